"""Shared pytest fixtures for ratesync."""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from ratesync.core.models import HistoricalDay, HistoricalSeries, RateSnapshot
from ratesync.sources.fake import FakeRateSource
from ratesync.sources.provider import StaticConnectivity
from ratesync.store.cursor import MemoryCursorStore
from ratesync.store.memory import MemoryRateStore
from ratesync.sync.cache import MemoryCache
from ratesync.sync.clock import ClockPolicy
from ratesync.sync.orchestrator import SyncOrchestrator

PARIS = ZoneInfo("Europe/Paris")

# Wednesday 2024-01-10, 18:00 in Paris: after that day's cutover.
WEDNESDAY_EVENING = datetime(2024, 1, 10, 18, 0, tzinfo=PARIS)


def paris(y: int, m: int, d: int, hh: int = 12, mm: int = 0, ss: int = 0) -> datetime:
    return datetime(y, m, d, hh, mm, ss, tzinfo=PARIS)


class MutableClock:
    """Callable returning a settable "now"."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now.astimezone(UTC)

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


def consecutive_series(
    end: date,
    rates: dict[str, list[float]],
    base: str = "USD",
) -> HistoricalSeries:
    """Series with one entry per calendar day, ending at `end`."""
    length = len(next(iter(rates.values())))
    start = end - timedelta(days=length - 1)
    days = [
        HistoricalDay(
            day=start + timedelta(days=i),
            rates={code: values[i] for code, values in rates.items()},
        )
        for i in range(length)
    ]
    return HistoricalSeries(base=base, days=days)


@pytest.fixture
def make_snapshot():
    """Factory for RateSnapshot with overridable defaults."""

    def _make(**overrides):
        defaults = dict(
            base="USD",
            as_of=date(2024, 1, 10),
            rates={"EUR": 0.91, "GBP": 0.79, "JPY": 145.2},
        )
        defaults.update(overrides)
        return RateSnapshot(**defaults)

    return _make


@pytest.fixture
def policy() -> ClockPolicy:
    return ClockPolicy()


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock(WEDNESDAY_EVENING)


@pytest.fixture
def fake_source(clock) -> FakeRateSource:
    return FakeRateSource(today=lambda: clock.now.astimezone(PARIS).date())


@pytest.fixture
async def memory_store() -> MemoryRateStore:
    store = MemoryRateStore()
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
def cursor_store() -> MemoryCursorStore:
    return MemoryCursorStore()


@pytest.fixture
def connectivity() -> StaticConnectivity:
    return StaticConnectivity(True)


@pytest.fixture
def orchestrator(fake_source, memory_store, cursor_store, connectivity, clock, policy):
    """Orchestrator over in-memory collaborators and a controllable clock."""
    return SyncOrchestrator(
        source=fake_source,
        store=memory_store,
        cursor_store=cursor_store,
        cache=MemoryCache(),
        policy=policy,
        connectivity=connectivity,
        fetch_timeout=2.0,
        clock=clock,
    )


@pytest.fixture
def make_series():
    """Factory: one entry per calendar day, ending at `end`."""
    return consecutive_series


@pytest.fixture
def at():
    """Factory for aware Paris datetimes: at(2024, 1, 10, 17, 0)."""
    return paris
