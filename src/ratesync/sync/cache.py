"""Process-local cache for the three rate data shapes.

There is no TTL: the cached value only changes when the source publishes,
and publication is tracked by the fetch cursor and ClockPolicy. Entries are
dropped only by an orchestrator write to the same shape or by clear().
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING, Generic, TypeVar

from ratesync.core.models import DataShape, RatePoint, RateSnapshot, TrendRecord

if TYPE_CHECKING:
    from ratesync.sync.clock import ClockPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")

HistoricalKey = tuple[str, date, date]


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A cached value plus the facts its freshness is judged by."""

    value: T
    as_of: date | None = None
    fetched_at: datetime | None = None
    cached_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def is_fresh(self, policy: ClockPolicy, now: datetime) -> bool:
        """True while the source cannot have published anything newer."""
        return not policy.should_fetch(self.fetched_at, now)


class MemoryCache:
    """Read-through/write-through cache keyed by data shape.

    Historical entries are keyed by (currency, start, end) and evicted
    least-recently-used beyond `max_historical_entries`. A cached range
    answers any sub-range query for the same currency by filtering.
    """

    def __init__(self, max_historical_entries: int = 10) -> None:
        self._max_historical = max_historical_entries
        self._current: CacheEntry[RateSnapshot] | None = None
        self._historical: OrderedDict[HistoricalKey, CacheEntry[list[RatePoint]]] = OrderedDict()
        self._trends: CacheEntry[dict[str, TrendRecord]] | None = None
        self._historical_version = 0

    # --- Current rates ---

    def get_current(self) -> CacheEntry[RateSnapshot] | None:
        return self._current

    def put_current(self, entry: CacheEntry[RateSnapshot]) -> None:
        self._current = entry

    # --- Historical ranges ---

    @property
    def historical_version(self) -> int:
        """Bumped on every historical invalidation."""
        return self._historical_version

    def get_historical(self, currency: str, start: date, end: date) -> list[RatePoint] | None:
        key = (currency, start, end)
        entry = self._historical.get(key)
        if entry is not None:
            self._historical.move_to_end(key)
            return list(entry.value)

        for (code, s, e), entry in self._historical.items():
            if code == currency and s <= start and e >= end:
                self._historical.move_to_end((code, s, e))
                logger.debug(
                    "Serving %s %s..%s from cached superset %s..%s",
                    currency, start, end, s, e,
                )
                return [p for p in entry.value if start <= p.day <= end]
        return None

    def put_historical(
        self,
        currency: str,
        start: date,
        end: date,
        entry: CacheEntry[list[RatePoint]],
        version: int | None = None,
    ) -> bool:
        """Cache a range result. Skipped if an invalidation happened since `version`."""
        if version is not None and version != self._historical_version:
            logger.debug("Dropping stale historical cache write for %s %s..%s", currency, start, end)
            return False
        key = (currency, start, end)
        self._historical[key] = entry
        self._historical.move_to_end(key)
        while len(self._historical) > self._max_historical:
            self._historical.popitem(last=False)
        return True

    def invalidate_historical(self) -> None:
        self._historical.clear()
        self._historical_version += 1

    # --- Trends ---

    def get_trends(self) -> CacheEntry[dict[str, TrendRecord]] | None:
        return self._trends

    def put_trends(self, entry: CacheEntry[dict[str, TrendRecord]]) -> None:
        self._trends = entry

    # --- Invalidation ---

    def invalidate(self, shape: DataShape) -> None:
        if shape == DataShape.CURRENT:
            self._current = None
        elif shape == DataShape.HISTORICAL:
            self.invalidate_historical()
        elif shape == DataShape.TREND:
            self._trends = None

    def clear(self) -> None:
        for shape in DataShape:
            self.invalidate(shape)

    def keys(self) -> list[str]:
        """Human-readable keys of what is cached, for status output."""
        result: list[str] = []
        if self._current is not None:
            result.append(f"current:{self._current.as_of}")
        result.extend(f"historical:{c}:{s}..{e}" for c, s, e in self._historical)
        if self._trends is not None:
            result.append(f"trend:{len(self._trends.value)}")
        return result
