"""Short-window trend derivation from stored historical rates."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta

from ratesync.core.config import RateSyncConfig
from ratesync.core.exceptions import InsufficientDataError
from ratesync.core.models import HistoricalSeries, TrendDirection, TrendRecord
from ratesync.sync.clock import ClockPolicy

logger = logging.getLogger(__name__)


class TrendEngine:
    """Computes per-currency change over the trailing window ending today.

    Pure computation over a HistoricalSeries handed in by the orchestrator;
    the engine never touches the store or the network.

    Parameters
    ----------
    policy : ClockPolicy
        Defines "today" and which days the source publishes on.
    window_days : int
        Length of the trailing window, today included. Default: 7.
    stable_epsilon : float
        Absolute percentage change below which a currency is "stable".
    """

    def __init__(
        self,
        policy: ClockPolicy,
        window_days: int = 7,
        stable_epsilon: float = 0.01,
    ) -> None:
        self._policy = policy
        self._window_days = window_days
        self._epsilon = stable_epsilon

    @classmethod
    def from_config(cls, config: RateSyncConfig, policy: ClockPolicy) -> TrendEngine:
        return cls(
            policy,
            window_days=config.trends.window_days,
            stable_epsilon=config.trends.stable_epsilon,
        )

    @property
    def window_days(self) -> int:
        return self._window_days

    def window(self, now: datetime) -> tuple[date, date]:
        """The trailing window [today - (N-1), today]."""
        today = self._policy.today(now)
        return today - timedelta(days=self._window_days - 1), today

    def lookback_range(self, now: datetime) -> tuple[date, date]:
        """Stored range needed to judge sufficiency."""
        latest = self._policy.latest_publication_day(now)
        return latest - timedelta(days=self._window_days + 7), self._policy.today(now)

    def affects_trend_window(self, start: date, end: date, now: datetime) -> bool:
        """True iff [start, end] intersects [today - 7 days, today]."""
        today = self._policy.today(now)
        return start <= today and end >= today - timedelta(days=7)

    def has_sufficient_data(self, series: HistoricalSeries, now: datetime) -> bool:
        """True iff stored days form a run of `window_days` consecutive
        calendar days ending at or after the latest publication day.

        A non-publishing day counts as covered when the day before it is
        covered, since the source carries its last rates over the weekend.
        """
        if not series.days:
            return False
        stored = set(series.dates())
        required_end = self._policy.latest_publication_day(now)
        last = max(required_end, series.days[-1].day)

        run = 0
        prev_covered = False
        day = series.days[0].day
        while day <= last:
            covered = day in stored or (
                prev_covered and not self._policy.is_publishing_day(day)
            )
            run = run + 1 if covered else 0
            if covered and run >= self._window_days and day >= required_end:
                return True
            prev_covered = covered
            day += timedelta(days=1)
        return False

    def recompute_trends(
        self, series: HistoricalSeries, now: datetime
    ) -> dict[str, TrendRecord]:
        """Wholesale trend set for every currency seen in the window.

        Raises:
            InsufficientDataError: if has_sufficient_data() is false.
        """
        if not self.has_sufficient_data(series, now):
            raise InsufficientDataError(
                f"Need {self._window_days} consecutive days of history",
                context={
                    "required_days": self._window_days,
                    "window_end": self._policy.latest_publication_day(now).isoformat(),
                },
            )

        start, end = self.window(now)
        windowed = series.between(start, end)
        records: dict[str, TrendRecord] = {}
        for code in sorted(windowed.currencies() - {series.base}):
            points = windowed.points_for(code)
            if len(points) < 2:
                continue
            first, latest = points[0].rate, points[-1].rate
            change = (latest - first) / first * 100
            records[code] = TrendRecord(
                currency=code,
                change_percent=change,
                direction=self._direction(change),
                sparkline=[p.rate for p in points],
                window_start=start,
                window_end=end,
            )
        logger.info("Recomputed trends for %d currencies (%s..%s)", len(records), start, end)
        return records

    def _direction(self, change: float) -> TrendDirection:
        if abs(change) < self._epsilon:
            return TrendDirection.STABLE
        return TrendDirection.UP if change > 0 else TrendDirection.DOWN
