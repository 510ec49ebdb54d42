"""Config-driven construction of stores."""

from __future__ import annotations

from ratesync.core.config import StorageConfig
from ratesync.core.exceptions import StorageError
from ratesync.core.models import StorageBackend
from ratesync.store.base import CursorStore, RateStore
from ratesync.store.cursor import JsonFileCursorStore, MemoryCursorStore
from ratesync.store.memory import MemoryRateStore
from ratesync.store.sqlite import SqliteRateStore


async def create_store(config: StorageConfig, base_currency: str = "USD") -> RateStore:
    """Create and initialize a rate store based on configuration."""
    if config.backend == StorageBackend.SQLITE:
        store: RateStore = SqliteRateStore(config, base_currency=base_currency)
    elif config.backend == StorageBackend.MEMORY:
        store = MemoryRateStore(base_currency=base_currency)
    else:
        raise StorageError(
            f"Unsupported storage backend: {config.backend}",
            context={"operation": "create_store", "backend": str(config.backend)},
        )
    await store.initialize()
    return store


def create_cursor_store(config: StorageConfig) -> CursorStore:
    """JSON-file cursor when a path is configured, in-memory otherwise."""
    if config.backend == StorageBackend.MEMORY or not config.cursor_path:
        return MemoryCursorStore()
    return JsonFileCursorStore(config.cursor_path)
