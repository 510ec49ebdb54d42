"""Tests for ratesync.core.models."""

from datetime import date

import pytest

from ratesync.core.exceptions import ValidationError
from ratesync.core.models import (
    HistoricalDay,
    HistoricalSeries,
    RatePoint,
    RateSnapshot,
    TrendDirection,
    TrendRecord,
    parse_api_date,
    parse_currency_code,
)


class TestParsing:
    @pytest.mark.parametrize("raw, expected", [("usd", "USD"), (" eur ", "EUR"), ("JPY", "JPY")])
    def test_currency_code_normalized(self, raw, expected):
        assert parse_currency_code(raw) == expected

    @pytest.mark.parametrize("raw", ["US", "EURO", "12A", "", None])
    def test_bad_currency_code_rejected(self, raw):
        with pytest.raises(ValidationError) as exc:
            parse_currency_code(raw)
        assert exc.value.context["field"] == "currency"

    def test_api_date(self):
        assert parse_api_date("2024-01-05") == date(2024, 1, 5)

    @pytest.mark.parametrize("raw", ["2024-1-5", "20240105", "2024-W01-5", "2024-02-30", "", 20240105])
    def test_bad_api_date_rejected(self, raw):
        with pytest.raises(ValidationError):
            parse_api_date(raw)


class TestRateSnapshot:
    def test_valid_construction(self, make_snapshot):
        snap = make_snapshot()
        assert snap.base == "USD"
        assert snap.rates["EUR"] == 0.91
        assert snap.currencies == ["EUR", "GBP", "JPY", "USD"]

    def test_codes_normalized(self):
        snap = RateSnapshot(base="usd", as_of=date(2024, 1, 10), rates={"eur": 0.9})
        assert snap.base == "USD"
        assert "EUR" in snap.rates

    @pytest.mark.parametrize("rate", [0, -1.5, float("nan"), float("inf")])
    def test_non_positive_rate_rejected(self, make_snapshot, rate):
        with pytest.raises(ValidationError):
            make_snapshot(rates={"EUR": rate})

    def test_base_must_map_to_one(self, make_snapshot):
        with pytest.raises(ValidationError, match="must map to 1.0"):
            make_snapshot(rates={"USD": 1.2, "EUR": 0.9})

    def test_frozen(self, make_snapshot):
        snap = make_snapshot()
        with pytest.raises(Exception):
            snap.base = "EUR"

    def test_cross_rate_and_convert(self, make_snapshot):
        snap = make_snapshot(rates={"EUR": 0.5, "GBP": 0.25})
        assert snap.rate_for("USD") == 1.0
        assert snap.cross_rate("EUR", "GBP") == pytest.approx(0.5)
        assert snap.convert(10, "GBP", "EUR") == pytest.approx(20.0)

    def test_unknown_currency_rejected(self, make_snapshot):
        with pytest.raises(ValidationError, match="No rate for CHF"):
            make_snapshot().rate_for("CHF")

    def test_with_base_rate(self, make_snapshot):
        snap = make_snapshot().with_base_rate()
        assert snap.rates["USD"] == 1.0
        assert snap.with_base_rate() is snap

    def test_equality_by_value(self, make_snapshot):
        assert make_snapshot() == make_snapshot()


class TestHistoricalSeries:
    def test_from_payload_sorts_days(self):
        series = HistoricalSeries.from_payload(
            "USD",
            {"2024-01-03": {"EUR": 0.92}, "2024-01-02": {"EUR": 0.91}},
        )
        assert series.dates() == [date(2024, 1, 2), date(2024, 1, 3)]
        assert series.first_day == date(2024, 1, 2)
        assert series.last_day == date(2024, 1, 3)
        assert len(series) == 2

    def test_duplicate_date_in_pairs_rejected(self):
        with pytest.raises(ValidationError, match="Duplicate date"):
            HistoricalSeries.from_payload(
                "USD",
                [("2024-01-02", {"EUR": 0.9}), ("2024-01-02", {"EUR": 0.91})],
            )

    def test_duplicate_days_rejected_on_construction(self):
        day = HistoricalDay(day=date(2024, 1, 2), rates={"EUR": 0.9})
        with pytest.raises(ValidationError):
            HistoricalSeries(base="USD", days=[day, day])

    def test_out_of_order_rejected(self):
        a = HistoricalDay(day=date(2024, 1, 3), rates={"EUR": 0.9})
        b = HistoricalDay(day=date(2024, 1, 2), rates={"EUR": 0.9})
        with pytest.raises(ValidationError, match="out of order"):
            HistoricalSeries(base="USD", days=[a, b])

    def test_unsupported_currency_rejected(self):
        with pytest.raises(ValidationError):
            HistoricalDay(day=date(2024, 1, 2), rates={"XXX": 1.0})

    def test_bad_date_key_rejected(self):
        with pytest.raises(ValidationError):
            HistoricalSeries.from_payload("USD", {"2024-1-2": {"EUR": 0.9}})

    def test_empty_series(self):
        series = HistoricalSeries(base="USD")
        assert len(series) == 0
        assert series.first_day is None
        assert series.last_day is None

    def test_between(self, make_series):
        series = make_series(date(2024, 1, 10), {"EUR": [0.9, 0.91, 0.92, 0.93]})
        sub = series.between(date(2024, 1, 8), date(2024, 1, 9))
        assert sub.dates() == [date(2024, 1, 8), date(2024, 1, 9)]

    def test_merge_keeps_one_row_per_day(self, make_series):
        old = make_series(date(2024, 1, 10), {"EUR": [0.90, 0.91, 0.92]})
        new = make_series(date(2024, 1, 12), {"EUR": [0.99, 0.99, 0.95]})
        merged = old.merged_with(new)
        assert merged.dates() == [date(2024, 1, d) for d in range(8, 13)]
        # existing day wins
        assert merged.get(date(2024, 1, 10)).rates["EUR"] == 0.92
        assert merged.get(date(2024, 1, 12)).rates["EUR"] == 0.95

    def test_merge_base_mismatch_rejected(self, make_series):
        usd = make_series(date(2024, 1, 10), {"EUR": [0.9]})
        eur = make_series(date(2024, 1, 11), {"GBP": [0.8]}, base="EUR")
        with pytest.raises(ValidationError):
            usd.merged_with(eur)

    def test_points_for(self, make_series):
        series = make_series(date(2024, 1, 10), {"EUR": [0.9, 0.91]})
        points = series.points_for("eur")
        assert points == [
            RatePoint(day=date(2024, 1, 9), currency="EUR", rate=0.9),
            RatePoint(day=date(2024, 1, 10), currency="EUR", rate=0.91),
        ]
        assert [p.rate for p in series.points_for("USD")] == [1.0, 1.0]
        assert series.points_for("GBP") == []


class TestTrendRecord:
    def test_valid(self):
        rec = TrendRecord(
            currency="eur",
            change_percent=4.5,
            direction=TrendDirection.UP,
            window_start=date(2024, 1, 4),
            window_end=date(2024, 1, 10),
        )
        assert rec.currency == "EUR"
        assert rec.direction == "up"

    def test_window_order(self):
        with pytest.raises(ValidationError, match="window_start"):
            TrendRecord(
                currency="EUR",
                change_percent=0.0,
                direction=TrendDirection.STABLE,
                window_start=date(2024, 1, 10),
                window_end=date(2024, 1, 4),
            )
