"""Tests for ratesync.sync.clock (ClockPolicy)."""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from ratesync.core.config import ScheduleConfig
from ratesync.sync.clock import ClockPolicy

PARIS = ZoneInfo("Europe/Paris")


def paris(y, m, d, hh=12, mm=0, ss=0) -> datetime:
    return datetime(y, m, d, hh, mm, ss, tzinfo=PARIS)


@pytest.fixture
def policy() -> ClockPolicy:
    return ClockPolicy()


class TestNeverFetched:
    @pytest.mark.parametrize(
        "now",
        [
            paris(2024, 1, 10, 9, 0),
            paris(2024, 1, 13, 23, 59),
            datetime(2030, 6, 1, tzinfo=UTC),
            datetime(2024, 1, 10),
        ],
    )
    def test_absent_last_fetch_always_fetches(self, policy, now):
        assert policy.should_fetch(None, now) is True


class TestSameDay:
    def test_flips_exactly_at_cutover(self, policy):
        last = paris(2024, 1, 10, 9, 0)
        cutover = paris(2024, 1, 10, 17, 0)
        assert policy.should_fetch(last, cutover - timedelta(seconds=1)) is False
        assert policy.should_fetch(last, cutover) is True
        assert policy.should_fetch(last, cutover + timedelta(seconds=1)) is True

    def test_already_fetched_after_cutover(self, policy):
        last = paris(2024, 1, 10, 17, 30)
        assert policy.should_fetch(last, paris(2024, 1, 10, 23, 0)) is False

    def test_both_before_cutover(self, policy):
        last = paris(2024, 1, 10, 8, 0)
        assert policy.should_fetch(last, paris(2024, 1, 10, 12, 0)) is False

    def test_fetched_exactly_at_cutover_is_current(self, policy):
        last = paris(2024, 1, 10, 17, 0)
        assert policy.should_fetch(last, paris(2024, 1, 10, 17, 0, 1)) is False


class TestWeekendCarryOver:
    def test_friday_after_cutover_into_same_weekend(self, policy):
        last = paris(2024, 1, 12, 17, 30)  # Friday
        assert policy.should_fetch(last, paris(2024, 1, 13, 10, 0)) is False  # Saturday
        assert policy.should_fetch(last, paris(2024, 1, 14, 23, 59)) is False  # Sunday

    def test_every_friday_evening_fetch_holds_through_weekend(self, policy):
        friday_cutover = paris(2024, 1, 12, 17, 0)
        saturday = paris(2024, 1, 13, 0, 0)
        for last_offset in range(0, 7 * 60, 30):
            last = friday_cutover + timedelta(minutes=last_offset)
            for hours in range(0, 48, 3):
                now = saturday + timedelta(hours=hours)
                assert policy.should_fetch(last, now) is False, (last, now)

    def test_following_week_fetches(self, policy):
        last = paris(2024, 1, 12, 17, 30)
        assert policy.should_fetch(last, paris(2024, 1, 15, 9, 0)) is True  # Monday
        assert policy.should_fetch(last, paris(2024, 1, 20, 12, 0)) is True  # next Saturday

    def test_friday_before_cutover_does_not_carry_over(self, policy):
        last = paris(2024, 1, 12, 16, 59)
        assert policy.should_fetch(last, paris(2024, 1, 13, 10, 0)) is True

    def test_thursday_fetch_is_not_pre_weekend(self, policy):
        last = paris(2024, 1, 11, 18, 0)
        assert policy.should_fetch(last, paris(2024, 1, 13, 10, 0)) is True

    def test_gap_spanning_several_weekends(self, policy):
        last = paris(2024, 1, 5, 18, 0)  # Friday two weeks earlier
        assert policy.should_fetch(last, paris(2024, 1, 13, 10, 0)) is True
        assert policy.should_fetch(last, paris(2024, 1, 21, 10, 0)) is True

    def test_weekday_to_weekday_across_days(self, policy):
        last = paris(2024, 1, 9, 18, 0)  # Tuesday after cutover
        assert policy.should_fetch(last, paris(2024, 1, 10, 9, 0)) is True


class TestTimezones:
    def test_naive_values_are_utc(self, policy):
        # 16:30 UTC == 17:30 Paris in winter
        last = datetime(2024, 1, 12, 16, 30)
        assert policy.should_fetch(last, datetime(2024, 1, 13, 9, 0)) is False

    def test_cutover_anchored_to_paris_not_utc(self, policy):
        last = datetime(2024, 1, 10, 8, 0, tzinfo=UTC)
        assert policy.should_fetch(last, datetime(2024, 1, 10, 15, 59, tzinfo=UTC)) is False
        assert policy.should_fetch(last, datetime(2024, 1, 10, 16, 0, tzinfo=UTC)) is True

    def test_summer_time_offset(self, policy):
        last = datetime(2024, 7, 10, 6, 0, tzinfo=UTC)
        assert policy.should_fetch(last, datetime(2024, 7, 10, 14, 59, tzinfo=UTC)) is False
        assert policy.should_fetch(last, datetime(2024, 7, 10, 15, 0, tzinfo=UTC)) is True

    def test_calendar_day_taken_in_publication_timezone(self, policy):
        # 23:30 UTC on Friday is already Saturday in Paris
        assert policy.today(datetime(2024, 1, 12, 23, 30, tzinfo=UTC)) == date(2024, 1, 13)


class TestTotality:
    def test_overflow_degrades_to_fetch(self, policy):
        last = datetime.max.replace(tzinfo=UTC)
        assert policy.should_fetch(last, paris(2024, 1, 10, 12, 0)) is True

    def test_last_fetch_in_future_fetches(self, policy):
        assert policy.should_fetch(paris(2024, 2, 1), paris(2024, 1, 10)) is True


class TestPublicationHelpers:
    @pytest.mark.parametrize(
        "now, expected",
        [
            (paris(2024, 1, 10, 10, 0), date(2024, 1, 9)),
            (paris(2024, 1, 10, 18, 0), date(2024, 1, 10)),
            (paris(2024, 1, 13, 12, 0), date(2024, 1, 12)),
            (paris(2024, 1, 15, 9, 0), date(2024, 1, 12)),
        ],
    )
    def test_latest_publication_day(self, policy, now, expected):
        assert policy.latest_publication_day(now) == expected

    def test_is_published(self, policy):
        now = paris(2024, 1, 10, 12, 0)
        assert policy.is_published(date(2024, 1, 9), now) is True
        assert policy.is_published(date(2024, 1, 10), now) is False
        assert policy.is_published(date(2024, 1, 6), now) is False
        assert policy.is_published(date(2024, 1, 11), now) is False

    def test_custom_schedule(self):
        policy = ClockPolicy(
            ScheduleConfig(
                timezone="UTC",
                cutover_hour=16,
                pre_weekend_day="thursday",
                non_publishing_days=("friday", "saturday"),
            )
        )
        last = datetime(2024, 1, 11, 16, 30, tzinfo=UTC)  # Thursday
        assert policy.should_fetch(last, datetime(2024, 1, 12, 10, 0, tzinfo=UTC)) is False
        assert policy.should_fetch(last, datetime(2024, 1, 14, 10, 0, tzinfo=UTC)) is True
        assert policy.is_publishing_day(date(2024, 1, 14)) is True  # Sunday
