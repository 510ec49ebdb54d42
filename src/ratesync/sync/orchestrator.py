"""SyncOrchestrator: cache -> store -> network, with write-through.

The orchestrator is the only component that writes the store, the cache
or the fetch cursor, and the only one that decides whether an error is
masked by stale-but-present data or surfaces to the caller.

Concurrency model
-----------------
- One shared task per fetch key (current rates, one historical range).
  Late callers await the running task instead of issuing a second request.
- Store writes are serialized per data shape; the cache is updated only
  after the store write returns.
- A cancelled caller abandons its own wait only. Shared work completes.
- Every network call is bounded by `fetch_timeout`; a timeout is a
  NetworkError and leaves the fetch cursor untouched.
- clear_all() bumps a generation counter. Fetches that started before the
  clear drop their results instead of writing them.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, date, datetime
from typing import Any, TypeVar

from ratesync.analytics import rebase_points
from ratesync.core.config import RateSyncConfig
from ratesync.core.exceptions import (
    DataUnavailableError,
    InsufficientDataError,
    NetworkError,
    ValidationError,
)
from ratesync.core.models import (
    DataShape,
    RatePoint,
    RateSnapshot,
    TrendRecord,
    parse_currency_code,
)
from ratesync.sources.provider import ConnectivityMonitor, RemoteRateSource, StaticConnectivity
from ratesync.store.base import CursorStore, RateStore
from ratesync.sync.cache import CacheEntry, MemoryCache
from ratesync.sync.clock import ClockPolicy
from ratesync.sync.gaps import missing_ranges, published_days
from ratesync.sync.inflight import InFlight
from ratesync.sync.trends import TrendEngine

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CURRENT_KEY = ("current",)
_TREND_KEY = ("trend",)


class SyncOrchestrator:
    """Public entry point for reading and refreshing exchange rates.

    Parameters
    ----------
    source : RemoteRateSource
        Fallible, slow remote collaborator.
    store : RateStore
        Durable store for snapshots, historical days and trends.
    cursor_store : CursorStore
        Slot holding the last successful fetch timestamp.
    cache, policy, trends, connectivity
        Optional collaborators; sensible defaults are built when omitted.
    fetch_timeout : float
        Seconds any single remote fetch may take.
    clock : Callable[[], datetime] | None
        Returns "now" (UTC-aware). Injected by tests.
    base_currency : str
        Base of every stored rate table.
    """

    def __init__(
        self,
        source: RemoteRateSource,
        store: RateStore,
        cursor_store: CursorStore,
        cache: MemoryCache | None = None,
        policy: ClockPolicy | None = None,
        trends: TrendEngine | None = None,
        connectivity: ConnectivityMonitor | None = None,
        fetch_timeout: float = 15.0,
        clock: Callable[[], datetime] | None = None,
        base_currency: str = "USD",
    ) -> None:
        self._source = source
        self._store = store
        self._cursor_store = cursor_store
        self._cache = cache or MemoryCache()
        self._policy = policy or ClockPolicy()
        self._trends = trends or TrendEngine(self._policy)
        self._connectivity = connectivity or StaticConnectivity(True)
        self._fetch_timeout = fetch_timeout
        self._clock = clock or (lambda: datetime.now(UTC))
        self._base = parse_currency_code(base_currency)

        self._inflight = InFlight()
        self._write_locks = {shape: asyncio.Lock() for shape in DataShape}
        self._cursor_lock = asyncio.Lock()
        self._generation = 0
        # published days a range fetch came back without (holidays)
        self._empty_days: set[date] = set()

    # --- Accessors ---

    @property
    def policy(self) -> ClockPolicy:
        return self._policy

    @property
    def cache(self) -> MemoryCache:
        return self._cache

    @property
    def store(self) -> RateStore:
        return self._store

    @property
    def source(self) -> RemoteRateSource:
        return self._source

    @property
    def trend_engine(self) -> TrendEngine:
        return self._trends

    @property
    def base_currency(self) -> str:
        return self._base

    def now(self) -> datetime:
        ts = self._clock()
        return ts if ts.tzinfo is not None else ts.replace(tzinfo=UTC)

    def _connected(self) -> bool:
        return self._connectivity.is_connected()

    async def _bounded(self, factory: Callable[[], Awaitable[T]], what: str) -> T:
        try:
            return await asyncio.wait_for(factory(), timeout=self._fetch_timeout)
        except TimeoutError as e:
            logger.error("Fetch of %s timed out after %.1fs", what, self._fetch_timeout)
            raise NetworkError(
                f"Timed out after {self._fetch_timeout}s fetching {what}",
                context={"url": what, "timeout": self._fetch_timeout},
            ) from e

    # --- Fetch cursor ---

    async def get_last_fetch_timestamp(self) -> datetime | None:
        async with self._cursor_lock:
            return await self._cursor_store.get()

    async def update_last_fetch_timestamp(self, ts: datetime) -> None:
        """Record an out-of-band fetch (demo mode, external importers)."""
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=UTC)
        async with self._cursor_lock:
            await self._cursor_store.set(ts)

    async def should_fetch(self) -> bool:
        return self._policy.should_fetch(await self.get_last_fetch_timestamp(), self.now())

    # --- Current rates ---

    async def load_current_rates(self) -> RateSnapshot:
        """Cache, then today's stored snapshot, then the network when due.

        Degrades to the most recent stored snapshot when the fetch is not
        due, the device is offline, or the fetch fails.

        Raises:
            DataUnavailableError: nothing cached, nothing stored, no fetch.
            StorageError: the store failed.
        """
        entry = self._cache.get_current()
        if entry is not None:
            logger.debug("Current rates served from cache (%s)", entry.as_of)
            return entry.value

        generation = self._generation
        now = self.now()
        stored = await self._store.get_snapshot(self._policy.today(now))
        if stored is not None:
            await self._cache_current(stored, generation)
            return stored

        last_fetch = await self.get_last_fetch_timestamp()
        if not self._connected():
            return await self._fallback_current("offline", generation)
        if not self._policy.should_fetch(last_fetch, now):
            logger.debug("Fetch not due (last fetch %s); serving latest stored", last_fetch)
            return await self._fallback_current(None, generation)
        try:
            return await self._refresh_current()
        except NetworkError as e:
            logger.warning("Current-rate fetch failed, falling back to stored data: %s", e)
            return await self._fallback_current(str(e), generation)

    async def refresh_if_due(self) -> RateSnapshot:
        """Fetch when ClockPolicy says new data may exist, else load normally."""
        entry = self._cache.get_current()
        if entry is not None and entry.is_fresh(self._policy, self.now()):
            logger.debug("Cached rates from %s are still current", entry.as_of)
            return entry.value

        generation = self._generation
        if self._connected() and await self.should_fetch():
            try:
                return await self._refresh_current()
            except NetworkError as e:
                logger.warning("Scheduled refresh failed: %s", e)
                return await self._fallback_current(str(e), generation)
        return await self.load_current_rates()

    async def trigger_refresh(self) -> RateSnapshot:
        """Unconditional fetch + write-through. NetworkError propagates."""
        return await self._refresh_current()

    async def _refresh_current(self) -> RateSnapshot:
        return await self._inflight.run(_CURRENT_KEY, self._fetch_and_store_current)

    async def _fetch_and_store_current(self) -> RateSnapshot:
        generation = self._generation
        snapshot = await self._bounded(self._source.fetch_current, "latest rates")
        async with self._write_locks[DataShape.CURRENT]:
            if generation != self._generation:
                logger.info("Discarding rates fetched before clear_all()")
                return snapshot
            await self._store.put_snapshot(snapshot)
            fetched_at = self.now()
            async with self._cursor_lock:
                await self._cursor_store.set(fetched_at)
            self._cache.put_current(CacheEntry(snapshot, snapshot.as_of, fetched_at))
        logger.info("Stored current rates for %s (%d currencies)", snapshot.as_of, len(snapshot.rates))
        return snapshot

    async def _cache_current(self, snapshot: RateSnapshot, generation: int) -> None:
        """Cache a stored snapshot unless clear_all() ran since it was read."""
        fetched_at = await self.get_last_fetch_timestamp()
        if generation != self._generation:
            logger.debug("Not caching rates for %s read before clear_all()", snapshot.as_of)
            return
        self._cache.put_current(CacheEntry(snapshot, snapshot.as_of, fetched_at))

    async def _fallback_current(self, failure: str | None, generation: int) -> RateSnapshot:
        latest = await self._store.get_latest_snapshot()
        if latest is None:
            raise DataUnavailableError(
                "No exchange rates available",
                context={"shape": str(DataShape.CURRENT), "reason": failure or "nothing stored"},
            )
        if failure is None:
            await self._cache_current(latest, generation)
        else:
            logger.warning("Serving stale rates from %s (%s)", latest.as_of, failure)
        return latest

    # --- Historical ranges ---

    async def load_historical_range(
        self,
        currency: str,
        start: date,
        end: date,
        base: str | None = None,
    ) -> list[RatePoint]:
        """Per-day points for one currency over [start, end], date order.

        Stored days are served as-is; only runs of missing days are fetched.
        With `base`, rates are re-expressed against that currency per day.

        Raises:
            ValidationError: malformed code or start > end.
            DataUnavailableError: nothing stored and the needed fetch failed.
        """
        code = parse_currency_code(currency)
        rebase = parse_currency_code(base) if base is not None else None
        if start > end:
            raise ValidationError(
                f"Range start {start} is after end {end}",
                context={"field": "start", "value": start.isoformat()},
            )

        points = await self._historical_points(code, start, end)
        if rebase is None or rebase == self._base:
            return points
        base_points = await self._historical_points(rebase, start, end)
        return rebase_points(points, base_points)

    async def _historical_points(self, code: str, start: date, end: date) -> list[RatePoint]:
        cached = self._cache.get_historical(code, start, end)
        if cached is not None:
            return cached

        failure = await self._fill_gaps(start, end)
        version = self._cache.historical_version
        series = await self._store.get_historical(start, end)
        points = series.points_for(code)

        if failure is None:
            self._cache.put_historical(
                code, start, end,
                CacheEntry(points, as_of=series.last_day, fetched_at=await self.get_last_fetch_timestamp()),
                version=version,
            )
        elif not points:
            raise DataUnavailableError(
                f"No {code} rates stored for {start}..{end}",
                context={"shape": str(DataShape.HISTORICAL), "reason": failure},
            )
        return points

    async def _fill_gaps(self, start: date, end: date) -> str | None:
        """Fetch runs of missing days. Returns why a needed fetch did not happen."""
        now = self.now()
        stored = await self._store.get_historical(start, end)
        gaps = missing_ranges(
            start, end, stored.dates(), self._policy, now, known_empty=self._empty_days
        )
        if not gaps:
            return None
        if not self._connected():
            logger.warning("Offline; not fetching %d missing range(s)", len(gaps))
            return "offline"

        failure = None
        for gap_start, gap_end in gaps:
            try:
                await self.fetch_and_save_historical(gap_start, gap_end)
            except (NetworkError, ValidationError) as e:
                logger.warning("Historical fetch %s..%s failed: %s", gap_start, gap_end, e)
                failure = str(e)
        return failure

    async def fetch_and_save_historical(self, start: date, end: date) -> int:
        """Fetch [start, end] and merge it into the store.

        Existing days are never overwritten. When the range touches the
        trend window, trends are recomputed if there is enough data.

        Returns:
            Number of newly stored days.
        """
        if start > end:
            raise ValidationError(
                f"Range start {start} is after end {end}",
                context={"field": "start", "value": start.isoformat()},
            )
        return await self._inflight.run(
            ("historical", start, end),
            lambda: self._fetch_and_store_historical(start, end),
        )

    async def _fetch_and_store_historical(self, start: date, end: date) -> int:
        generation = self._generation
        series = await self._bounded(
            lambda: self._source.fetch_range(start, end), f"history {start}..{end}"
        )
        async with self._write_locks[DataShape.HISTORICAL]:
            if generation != self._generation:
                logger.info("Discarding history %s..%s fetched before clear_all()", start, end)
                return 0
            added = await self._store.put_historical(series)
            self._cache.invalidate_historical()
            now = self.now()
            served = set(series.dates())
            self._empty_days.update(
                d for d in published_days(start, end, self._policy, now) if d not in served
            )

        if self._trends.affects_trend_window(start, end, now):
            try:
                await self.compute_trends()
            except InsufficientDataError as e:
                logger.info("Trends not yet available: %s", e)
        return added

    # --- Trends ---

    async def compute_trends(self) -> dict[str, TrendRecord]:
        """Recompute, persist and cache the whole trend set.

        Raises:
            InsufficientDataError: not enough consecutive history.
        """
        return await self._inflight.run(_TREND_KEY, self._compute_and_store_trends)

    async def _compute_and_store_trends(self) -> dict[str, TrendRecord]:
        generation = self._generation
        now = self.now()
        lookback_start, today = self._trends.lookback_range(now)
        series = await self._store.get_historical(lookback_start, today)
        records = self._trends.recompute_trends(series, now)
        async with self._write_locks[DataShape.TREND]:
            if generation != self._generation:
                return records
            await self._store.put_trends(records)
            self._cache.put_trends(CacheEntry(records, as_of=today))
        return records

    async def load_trends(self) -> dict[str, TrendRecord]:
        """Trends for the window ending today, computing them if needed.

        Falls back to previously stored trends when fresh ones cannot be
        derived.

        Raises:
            InsufficientDataError: no usable trends at all.
        """
        entry = self._cache.get_trends()
        now = self.now()
        today = self._policy.today(now)
        if entry is not None and entry.as_of == today:
            return entry.value

        generation = self._generation
        stored = await self._store.get_trends()
        if stored and all(r.window_end == today for r in stored.values()):
            if generation == self._generation:
                self._cache.put_trends(CacheEntry(stored, as_of=today))
            return stored

        try:
            return await self.compute_trends()
        except InsufficientDataError:
            if self._connected():
                lookback_start, _ = self._trends.lookback_range(now)
                await self._fill_gaps(lookback_start, today)
        try:
            return await self.compute_trends()
        except InsufficientDataError:
            if stored:
                logger.warning("Serving trends from a previous window")
                return stored
            raise

    # --- Conversion ---

    async def convert(self, amount: float, from_code: str, to_code: str) -> float:
        snapshot = await self.load_current_rates()
        return snapshot.convert(amount, from_code, to_code)

    # --- Maintenance ---

    async def clear_all(self) -> None:
        """Wipe cache, store and fetch cursor. Idempotent."""
        self._generation += 1
        self._cache.clear()
        self._empty_days.clear()
        async with (
            self._write_locks[DataShape.CURRENT],
            self._write_locks[DataShape.HISTORICAL],
            self._write_locks[DataShape.TREND],
        ):
            await self._store.clear()
            async with self._cursor_lock:
                await self._cursor_store.clear()
            self._cache.clear()
        logger.info("Cleared all rate data")

    async def status(self) -> dict[str, Any]:
        last_fetch = await self.get_last_fetch_timestamp()
        now = self.now()
        stats = await self._store.get_statistics()
        return {
            "now": now.isoformat(),
            "today": self._policy.today(now).isoformat(),
            "last_fetch": last_fetch.isoformat() if last_fetch else None,
            "should_fetch": self._policy.should_fetch(last_fetch, now),
            "latest_publication_day": self._policy.latest_publication_day(now).isoformat(),
            "connected": self._connected(),
            "store": stats,
            "cache": self._cache.keys(),
            "in_flight": [str(k) for k in self._inflight.keys()],
        }

    async def close(self) -> None:
        await self._inflight.drain()
        await self._store.close()
        close = getattr(self._source, "close", None)
        if close is not None:
            await close()


async def create_orchestrator(
    config: RateSyncConfig,
    source: RemoteRateSource | None = None,
    demo: bool = False,
    connectivity: ConnectivityMonitor | None = None,
) -> SyncOrchestrator:
    """Build an orchestrator and its collaborators from configuration."""
    from ratesync.sources.fake import FakeRateSource
    from ratesync.sources.frankfurter import FrankfurterRateSource
    from ratesync.store.factory import create_cursor_store, create_store

    policy = ClockPolicy.from_config(config)
    if source is None:
        if demo:
            source = FakeRateSource(
                base=config.source.base_currency,
                today=lambda: policy.latest_publication_day(datetime.now(UTC)),
            )
        else:
            source = FrankfurterRateSource(config.source)

    store = await create_store(config.storage, base_currency=config.source.base_currency)
    return SyncOrchestrator(
        source=source,
        store=store,
        cursor_store=create_cursor_store(config.storage),
        cache=MemoryCache(config.cache.max_historical_entries),
        policy=policy,
        trends=TrendEngine.from_config(config, policy),
        connectivity=connectivity,
        fetch_timeout=config.source.fetch_timeout,
        base_currency=config.source.base_currency,
    )
