"""End-to-end test fixtures: requires network access to the Frankfurter API."""

from __future__ import annotations

from pathlib import Path

import pytest

from ratesync.core.config import RateSyncConfig, SourceConfig, StorageConfig


def pytest_configure(config):
    """Register e2e and slow markers."""
    config.addinivalue_line("markers", "e2e: end-to-end test requiring network")
    config.addinivalue_line("markers", "slow: tests that take > 10 seconds")


@pytest.fixture
def e2e_config(tmp_path: Path) -> RateSyncConfig:
    """Config for e2e tests against the live rate source."""
    return RateSyncConfig(
        source=SourceConfig(
            base_currency="USD",
            request_timeout=30.0,
            fetch_timeout=60.0,
            rate_limit=2,
        ),
        storage=StorageConfig(
            sqlite_path=str(tmp_path / "e2e.db"),
            cursor_path=str(tmp_path / "e2e_cursor.json"),
        ),
    )
