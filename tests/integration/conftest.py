"""Integration test fixtures: real files on disk, no network."""

from __future__ import annotations

from pathlib import Path

import pytest

from ratesync.core.config import RateSyncConfig, StorageConfig
from ratesync.core.models import StorageBackend
from ratesync.store.cursor import JsonFileCursorStore
from ratesync.store.sqlite import SqliteRateStore


@pytest.fixture
def integration_config(tmp_path: Path) -> RateSyncConfig:
    """Config backed by a SQLite file and a JSON fetch cursor under tmp_path."""
    return RateSyncConfig(
        storage=StorageConfig(
            backend=StorageBackend.SQLITE,
            sqlite_path=str(tmp_path / "integration.db"),
            cursor_path=str(tmp_path / "last_fetch.json"),
        ),
    )


@pytest.fixture
async def integration_store(integration_config: RateSyncConfig) -> SqliteRateStore:
    """An initialized SqliteRateStore for integration tests."""
    store = SqliteRateStore(integration_config.storage)
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
def file_cursor(integration_config: RateSyncConfig) -> JsonFileCursorStore:
    return JsonFileCursorStore(integration_config.storage.cursor_path)


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """ratesync.yml pointing storage at tmp_path."""
    path = tmp_path / "ratesync.yml"
    path.write_text(
        "storage:\n"
        f"  sqlite_path: {tmp_path / 'cli.db'}\n"
        f"  cursor_path: {tmp_path / 'cli_cursor.json'}\n"
    )
    return path
