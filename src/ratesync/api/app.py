"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ratesync.api.deps import AppState, api_key_middleware
from ratesync.api.routes import router
from ratesync.core.config import RateSyncConfig, load_config
from ratesync.core.exceptions import (
    ConfigError,
    DataUnavailableError,
    InsufficientDataError,
    NetworkError,
    RateSyncError,
    StorageError,
    ValidationError,
)
from ratesync.sync.orchestrator import SyncOrchestrator, create_orchestrator

_STATUS_MAP: dict[type[RateSyncError], int] = {
    ConfigError: 400,
    DataUnavailableError: 404,
    InsufficientDataError: 409,
    ValidationError: 422,
    NetworkError: 503,
    StorageError: 500,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup/shutdown lifecycle."""
    config = app.state._pending_config or load_config()
    orchestrator = app.state._pending_orchestrator or await create_orchestrator(
        config, demo=app.state._demo
    )

    app.state.app_state = AppState(config=config, orchestrator=orchestrator)

    yield

    await orchestrator.close()


def create_app(
    config: RateSyncConfig | None = None,
    orchestrator: SyncOrchestrator | None = None,
    demo: bool = False,
) -> FastAPI:
    """Create and configure the FastAPI application.

    An already-built orchestrator may be passed in (tests, embedding);
    otherwise one is created from `config` at startup.
    """
    import ratesync

    app = FastAPI(
        title="ratesync API",
        description="Exchange rates with schedule-aware caching and trend signals",
        version=ratesync.__version__,
        lifespan=lifespan,
    )

    # Stash construction inputs so lifespan can retrieve them
    app.state._pending_config = config
    app.state._pending_orchestrator = orchestrator
    app.state._demo = demo

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if config and config.api.api_key:
        app.middleware("http")(api_key_middleware)

    app.include_router(router, prefix="/api")

    @app.exception_handler(RateSyncError)
    async def ratesync_exception_handler(request: Request, exc: RateSyncError):
        status = next(
            (code for cls, code in _STATUS_MAP.items() if isinstance(exc, cls)),
            500,
        )
        return JSONResponse(
            status_code=status,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    return app
