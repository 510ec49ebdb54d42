"""In-memory rate source for demo mode and tests.

Serves deterministic rates without touching the network. Rates drift a
little from day to day so charts and trends have something to show.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, date, datetime, timedelta

from ratesync.core.exceptions import NetworkError
from ratesync.core.models import HistoricalDay, HistoricalSeries, RateSnapshot

logger = logging.getLogger(__name__)

DEMO_RATES: dict[str, float] = {
    "EUR": 0.85,
    "GBP": 0.73,
    "JPY": 110.0,
    "CAD": 1.25,
    "AUD": 1.35,
    "CNY": 6.45,
    "INR": 74.5,
    "CHF": 0.92,
    "MXN": 20.0,
    "BRL": 5.4,
}


def _drift(base_rate: float, day: date) -> float:
    # deterministic wiggle in [-0.3%, +0.3%]
    step = (day.toordinal() % 7) - 3
    return round(base_rate * (1 + step / 1000), 6)


class FakeRateSource:
    """Deterministic RemoteRateSource with failure and latency knobs.

    Parameters
    ----------
    rates : dict[str, float] | None
        Rates relative to `base` used to synthesize snapshots and series.
    today : Callable[[], date] | None
        Supplies the as-of date for fetch_current(). Defaults to UTC today.
    delay : float
        Seconds each fetch sleeps before answering.
    """

    def __init__(
        self,
        rates: dict[str, float] | None = None,
        base: str = "USD",
        today: Callable[[], date] | None = None,
        delay: float = 0.0,
    ) -> None:
        self.base = base
        self.rates = dict(rates or DEMO_RATES)
        self.delay = delay
        self.online = True
        self.fail_with: Exception | None = None
        self.current_calls = 0
        self.range_calls: list[tuple[date, date]] = []
        self._today = today or (lambda: datetime.now(UTC).date())
        self._current: RateSnapshot | None = None
        self._series: dict[date, HistoricalDay] = {}

    # --- Seeding ---

    def set_current(self, snapshot: RateSnapshot) -> None:
        """Serve exactly this snapshot from fetch_current()."""
        self._current = snapshot

    def seed_series(self, series: HistoricalSeries) -> None:
        """Serve these days from fetch_range() instead of synthesized ones."""
        for d in series.days:
            self._series[d.day] = d

    # --- RemoteRateSource ---

    async def _before_fetch(self, what: str) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if not self.online:
            raise NetworkError(
                f"Fake source offline ({what})",
                context={"url": f"fake://{what}"},
            )
        if self.fail_with is not None:
            raise self.fail_with

    async def fetch_current(self) -> RateSnapshot:
        self.current_calls += 1
        await self._before_fetch("latest")
        if self._current is not None:
            return self._current
        day = self._today()
        return RateSnapshot(
            base=self.base,
            as_of=day,
            rates={**{c: _drift(r, day) for c, r in self.rates.items()}, self.base: 1.0},
        )

    async def fetch_range(self, start: date, end: date) -> HistoricalSeries:
        self.range_calls.append((start, end))
        await self._before_fetch(f"{start}..{end}")
        days: list[HistoricalDay] = []
        day = start
        while day <= end:
            if day in self._series:
                days.append(self._series[day])
            elif not self._series and day.weekday() < 5:
                days.append(
                    HistoricalDay(
                        day=day,
                        rates={
                            **{c: _drift(r, day) for c, r in self.rates.items()},
                            self.base: 1.0,
                        },
                    )
                )
            day += timedelta(days=1)
        logger.debug("Fake source served %d days for %s..%s", len(days), start, end)
        return HistoricalSeries(base=self.base, days=days)
