"""Which parts of a requested range still need fetching."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, timedelta

from ratesync.sync.clock import ClockPolicy

DateRange = tuple[date, date]

_ONE_DAY = timedelta(days=1)


def published_days(start: date, end: date, policy: ClockPolicy, now: datetime) -> list[date]:
    """Days in [start, end] the source has already published."""
    days = []
    day = start
    while day <= end:
        if policy.is_published(day, now):
            days.append(day)
        day += _ONE_DAY
    return days


def has_published_day(
    start: date, end: date, policy: ClockPolicy, now: datetime
) -> bool:
    """True if the source has published rates for any day in [start, end]."""
    day = start
    while day <= end:
        if policy.is_published(day, now):
            return True
        day += _ONE_DAY
    return False


def missing_ranges(
    start: date,
    end: date,
    stored: Iterable[date],
    policy: ClockPolicy,
    now: datetime,
    known_empty: Iterable[date] = (),
) -> list[DateRange]:
    """Runs of days in [start, end] that are not stored and could hold data.

    `stored` are the days already in the store; `known_empty` are days a
    previous fetch came back without. A run with no published day (weekend,
    future, today before the cutover) is dropped. A run with stored days on
    both sides and a single published day is an isolated holiday and is
    dropped as well.
    """
    if start > end:
        return []

    have = set(stored) | set(known_empty)
    runs: list[DateRange] = []
    run_start: date | None = None
    day = start
    while day <= end:
        if day in have:
            if run_start is not None:
                runs.append((run_start, day - _ONE_DAY))
                run_start = None
        elif run_start is None:
            run_start = day
        day += _ONE_DAY
    if run_start is not None:
        runs.append((run_start, end))

    result: list[DateRange] = []
    for s, e in runs:
        published = published_days(s, e, policy, now)
        if not published:
            continue
        if s > start and e < end and len(published) == 1:
            continue
        result.append((s, e))
    return result
