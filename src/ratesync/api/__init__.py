"""HTTP surface over the sync orchestrator."""

from ratesync.api.app import create_app

__all__ = ["create_app"]
