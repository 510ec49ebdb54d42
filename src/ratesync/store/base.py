"""Durable storage protocols.

Two separate collaborators: the main rate store
(snapshots, historical series, trend records) and the single-slot fetch
cursor, which only the orchestrator reads and writes.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Protocol, runtime_checkable

from ratesync.core.models import HistoricalSeries, RateSnapshot, TrendRecord


@runtime_checkable
class RateStore(Protocol):
    """Persistence for the three rate data shapes.

    Every method reports failures as StorageError. Historical writes are
    insert-only: a day already stored is never overwritten.
    """

    async def initialize(self) -> None: ...
    async def close(self) -> None: ...
    async def health_check(self) -> bool: ...

    async def put_snapshot(self, snapshot: RateSnapshot) -> None: ...
    async def get_snapshot(self, as_of: date) -> RateSnapshot | None: ...
    async def get_latest_snapshot(self) -> RateSnapshot | None: ...

    async def put_historical(self, series: HistoricalSeries) -> int:
        """Insert days not yet stored. Returns the number of new days."""
        ...

    async def get_historical(
        self, start: date | None = None, end: date | None = None
    ) -> HistoricalSeries: ...
    async def earliest_date(self) -> date | None: ...
    async def latest_date(self) -> date | None: ...

    async def put_trends(self, records: dict[str, TrendRecord]) -> None:
        """Replace the whole trend set."""
        ...

    async def get_trends(self) -> dict[str, TrendRecord]: ...

    async def clear(self) -> None: ...
    async def get_statistics(self) -> dict[str, Any]: ...


@runtime_checkable
class CursorStore(Protocol):
    """Small key-value slot holding the last successful fetch timestamp."""

    async def get(self) -> datetime | None: ...
    async def set(self, ts: datetime) -> None: ...
    async def clear(self) -> None: ...
