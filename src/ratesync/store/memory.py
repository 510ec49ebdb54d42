"""In-memory RateStore, for demo mode and tests."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from ratesync.core.exceptions import StorageError, ValidationError
from ratesync.core.models import HistoricalDay, HistoricalSeries, RateSnapshot, TrendRecord

logger = logging.getLogger(__name__)


class MemoryRateStore:
    """Dict-backed store with the same semantics as SqliteRateStore."""

    def __init__(self, base_currency: str = "USD") -> None:
        self._base = base_currency
        self._snapshots: dict[date, RateSnapshot] = {}
        self._days: dict[date, HistoricalDay] = {}
        self._trends: dict[str, TrendRecord] = {}
        self._open = False

    async def initialize(self) -> None:
        self._open = True

    async def close(self) -> None:
        self._open = False

    async def health_check(self) -> bool:
        return self._open

    def _require_open(self, operation: str) -> None:
        if not self._open:
            raise StorageError(
                "Store not initialized",
                context={"operation": operation, "table": "memory"},
            )

    # --- Snapshots ---

    async def put_snapshot(self, snapshot: RateSnapshot) -> None:
        self._require_open("insert")
        self._snapshots[snapshot.as_of] = snapshot

    async def get_snapshot(self, as_of: date) -> RateSnapshot | None:
        self._require_open("query")
        return self._snapshots.get(as_of)

    async def get_latest_snapshot(self) -> RateSnapshot | None:
        self._require_open("query")
        if not self._snapshots:
            return None
        return self._snapshots[max(self._snapshots)]

    # --- Historical ---

    async def put_historical(self, series: HistoricalSeries) -> int:
        self._require_open("insert")
        if series.base != self._base:
            raise ValidationError(
                f"Series base {series.base} does not match store base {self._base}",
                context={"field": "base", "value": series.base},
            )
        added = 0
        for d in series.days:
            if d.day not in self._days:
                self._days[d.day] = d
                added += 1
        return added

    async def get_historical(
        self, start: date | None = None, end: date | None = None
    ) -> HistoricalSeries:
        self._require_open("query")
        days = [
            self._days[k]
            for k in sorted(self._days)
            if (start is None or k >= start) and (end is None or k <= end)
        ]
        return HistoricalSeries(base=self._base, days=days)

    async def earliest_date(self) -> date | None:
        self._require_open("query")
        return min(self._days) if self._days else None

    async def latest_date(self) -> date | None:
        self._require_open("query")
        return max(self._days) if self._days else None

    # --- Trends ---

    async def put_trends(self, records: dict[str, TrendRecord]) -> None:
        self._require_open("insert")
        self._trends = dict(records)

    async def get_trends(self) -> dict[str, TrendRecord]:
        self._require_open("query")
        return dict(self._trends)

    # --- Maintenance ---

    async def clear(self) -> None:
        self._require_open("delete")
        self._snapshots.clear()
        self._days.clear()
        self._trends.clear()
        logger.info("Cleared in-memory rate store")

    async def get_statistics(self) -> dict[str, Any]:
        self._require_open("query")
        return {
            "snapshots": len(self._snapshots),
            "historical_days": len(self._days),
            "trend_records": len(self._trends),
            "earliest_date": min(self._days).isoformat() if self._days else None,
            "latest_date": max(self._days).isoformat() if self._days else None,
        }
