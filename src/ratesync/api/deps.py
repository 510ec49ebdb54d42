"""Dependency injection for FastAPI routes."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request
from fastapi.responses import JSONResponse

from ratesync.core.config import RateSyncConfig
from ratesync.sync.orchestrator import SyncOrchestrator


@dataclass
class AppState:
    """Shared application state, attached to app.state during lifespan."""

    config: RateSyncConfig
    orchestrator: SyncOrchestrator


def get_config(request: Request) -> RateSyncConfig:
    return request.app.state.app_state.config


def get_orchestrator(request: Request) -> SyncOrchestrator:
    """Dependency: retrieve the sync orchestrator."""
    return request.app.state.app_state.orchestrator


EXEMPT_PATHS = {"/api/health"}


async def api_key_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Middleware: validate X-API-Key header when authentication is enabled."""
    if request.url.path in EXEMPT_PATHS:
        return await call_next(request)

    config = request.app.state.app_state.config
    if config.api.api_key:
        api_key = request.headers.get("X-API-Key")
        if api_key != config.api.api_key:
            return JSONResponse(
                status_code=401,
                content={"error": "Unauthorized", "detail": "Invalid or missing API key"},
            )
    return await call_next(request)
