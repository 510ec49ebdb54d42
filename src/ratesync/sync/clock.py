"""Fetch-eligibility decisions anchored to the source's publication schedule.

The remote source publishes one rate table per publishing day, at a fixed
cutover time in its own timezone. Everything here is pure calendar math on
aware datetimes: no I/O, no suspension, no exceptions escaping should_fetch().
"""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from ratesync.core.config import RateSyncConfig, ScheduleConfig

logger = logging.getLogger(__name__)


class ClockPolicy:
    """Answers "does the source have data we have not fetched yet?".

    Parameters
    ----------
    schedule : ScheduleConfig | None
        Publication timezone, cutover and weekday rules. Defaults to
        17:00 Europe/Paris, Friday pre-weekend, Saturday/Sunday off.
    """

    def __init__(self, schedule: ScheduleConfig | None = None) -> None:
        schedule = schedule or ScheduleConfig()
        self._tz = ZoneInfo(schedule.timezone)
        self._cutover = time(schedule.cutover_hour, schedule.cutover_minute)
        self._pre_weekend = schedule.pre_weekend_weekday
        self._non_publishing = schedule.non_publishing_weekdays

    @classmethod
    def from_config(cls, config: RateSyncConfig) -> ClockPolicy:
        return cls(config.schedule)

    @property
    def timezone(self) -> ZoneInfo:
        return self._tz

    # --- Calendar helpers ---

    def localize(self, ts: datetime) -> datetime:
        """Express `ts` in the publication timezone. Naive values are UTC."""
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=UTC)
        return ts.astimezone(self._tz)

    def today(self, now: datetime) -> date:
        """Calendar day of `now` in the publication timezone."""
        return self.localize(now).date()

    def cutover_for(self, day: date) -> datetime:
        """The instant `day`'s rates become authoritative."""
        return datetime.combine(day, self._cutover, tzinfo=self._tz)

    def is_publishing_day(self, day: date) -> bool:
        return day.weekday() not in self._non_publishing

    def is_published(self, day: date, now: datetime) -> bool:
        """True if the source has already published rates for `day`."""
        if not self.is_publishing_day(day):
            return False
        local_now = self.localize(now)
        if day > local_now.date():
            return False
        if day == local_now.date():
            return local_now >= self.cutover_for(day)
        return True

    def latest_publication_day(self, now: datetime) -> date:
        """Most recent day whose rates are live as of `now`."""
        day = self.today(now)
        for _ in range(8):
            if self.is_published(day, now):
                return day
            day -= timedelta(days=1)
        return day

    def _in_carry_over(self, last_day: date, now_day: date) -> bool:
        """True if `now_day` sits in the non-publishing run right after `last_day`."""
        day = last_day + timedelta(days=1)
        while not self.is_publishing_day(day) and day <= now_day:
            if day == now_day:
                return True
            day += timedelta(days=1)
        return False

    # --- Decision ---

    def should_fetch(self, last_fetch: datetime | None, now: datetime) -> bool:
        """Decide whether the remote source may hold newer data than `last_fetch`.

        Total: calendar failures are logged and answered with True so the
        caller refetches rather than silently serving stale data.
        """
        if last_fetch is None:
            return True
        try:
            return self._should_fetch(last_fetch, now)
        except (OverflowError, ValueError, ArithmeticError) as e:
            logger.warning(
                "Cutover computation failed (last_fetch=%s, now=%s): %s; refetching",
                last_fetch, now, e,
            )
            return True

    def _should_fetch(self, last_fetch: datetime, now: datetime) -> bool:
        local_now = self.localize(now)
        local_last = self.localize(last_fetch)
        now_day = local_now.date()
        last_day = local_last.date()

        now_cutover = self.cutover_for(now_day)
        last_cutover = self.cutover_for(last_day)

        if last_day == now_day:
            return local_last < now_cutover <= local_now

        if (
            last_day < now_day
            and last_day.weekday() == self._pre_weekend
            and local_last >= last_cutover
            and not self.is_publishing_day(now_day)
            and self._in_carry_over(last_day, now_day)
        ):
            return False

        return True
