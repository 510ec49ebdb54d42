"""Pydantic data models: the system's type contracts."""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Mapping
from datetime import date
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from ratesync.core.exceptions import ValidationError

# --- Type Aliases ---

CurrencyCode = str

# Currencies published by the reference-rate source.
SUPPORTED_CURRENCIES: frozenset[CurrencyCode] = frozenset(
    {
        "AUD", "BGN", "BRL", "CAD", "CHF", "CNY", "CZK", "DKK",
        "EUR", "GBP", "HKD", "HUF", "IDR", "ILS", "INR", "ISK",
        "JPY", "KRW", "MXN", "MYR", "NOK", "NZD", "PHP", "PLN",
        "RON", "SEK", "SGD", "THB", "TRY", "USD", "ZAR",
    }
)

_CODE_RE = re.compile(r"^[A-Z]{3}$")
_API_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# --- Enumerations ---


class TrendDirection(StrEnum):
    """Direction of a currency over the trailing trend window."""

    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class DataShape(StrEnum):
    """The three cached data shapes."""

    CURRENT = "current"
    HISTORICAL = "historical"
    TREND = "trend"


class StorageBackend(StrEnum):
    """Supported durable-store backends."""

    SQLITE = "sqlite"
    MEMORY = "memory"


# --- Parsing helpers ---


def parse_currency_code(value: Any) -> CurrencyCode:
    """Normalize a currency code, raising ValidationError if malformed."""
    code = str(value).strip().upper() if value is not None else ""
    if not _CODE_RE.match(code):
        raise ValidationError(
            f"Currency code must be three letters, got {value!r}",
            context={"field": "currency", "value": value},
        )
    return code


def parse_api_date(value: str) -> date:
    """Parse a zero-padded YYYY-MM-DD string.

    Non-canonical forms ("2024-1-5", "20240105", ISO week dates) are
    rejected even though date.fromisoformat accepts some of them.
    """
    if not isinstance(value, str) or not _API_DATE_RE.match(value):
        raise ValidationError(
            f"Date must be in YYYY-MM-DD form, got {value!r}",
            context={"field": "date", "value": value},
        )
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise ValidationError(
            f"Invalid calendar date: {value!r}",
            context={"field": "date", "value": value},
        ) from e


def _check_code(v: str) -> str:
    if not isinstance(v, str) or not _CODE_RE.match(v.strip().upper()):
        raise ValueError(f"currency code must be three letters, got {v!r}")
    return v.strip().upper()


def _check_rates(rates: dict[str, float], supported_only: bool) -> dict[str, float]:
    cleaned: dict[str, float] = {}
    for raw_code, rate in rates.items():
        code = _check_code(raw_code)
        if supported_only and code not in SUPPORTED_CURRENCIES:
            raise ValueError(f"unsupported currency: {code}")
        if code in cleaned:
            raise ValueError(f"duplicate currency code: {code}")
        if isinstance(rate, bool) or not isinstance(rate, (int, float)):
            raise ValueError(f"rate for {code} must be a number, got {rate!r}")
        if not math.isfinite(rate) or rate <= 0:
            raise ValueError(f"rate for {code} must be positive and finite, got {rate!r}")
        cleaned[code] = float(rate)
    return cleaned


class _RateModel(BaseModel):
    """Frozen base model whose construction errors surface as ValidationError."""

    model_config = ConfigDict(frozen=True)

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except PydanticValidationError as e:
            first = e.errors()[0] if e.errors() else {}
            raise ValidationError(
                f"Invalid {type(self).__name__}: {first.get('msg', e)}",
                context={
                    "model": type(self).__name__,
                    "field": ".".join(str(p) for p in first.get("loc", ())),
                },
            ) from e


# --- Rate Models ---


class RateSnapshot(_RateModel):
    """One day's rate table relative to a base currency."""

    base: CurrencyCode = "USD"
    as_of: date
    rates: dict[CurrencyCode, float]

    @field_validator("base")
    @classmethod
    def base_is_code(cls, v: str) -> str:
        return _check_code(v)

    @field_validator("rates")
    @classmethod
    def rates_are_valid(cls, v: dict[str, float]) -> dict[str, float]:
        return _check_rates(v, supported_only=False)

    @model_validator(mode="after")
    def base_maps_to_one(self) -> RateSnapshot:
        if self.base in self.rates and self.rates[self.base] != 1.0:
            raise ValueError(
                f"base currency {self.base} must map to 1.0, got {self.rates[self.base]}"
            )
        return self

    @property
    def currencies(self) -> list[CurrencyCode]:
        codes = set(self.rates) | {self.base}
        return sorted(codes)

    def rate_for(self, code: str) -> float:
        """Rate of `code` relative to the snapshot base."""
        code = parse_currency_code(code)
        if code == self.base:
            return 1.0
        try:
            return self.rates[code]
        except KeyError:
            raise ValidationError(
                f"No rate for {code} in snapshot of {self.as_of}",
                context={"field": "currency", "value": code},
            ) from None

    def cross_rate(self, from_code: str, to_code: str) -> float:
        """Units of `to_code` per one unit of `from_code`."""
        return self.rate_for(to_code) / self.rate_for(from_code)

    def convert(self, amount: float, from_code: str, to_code: str) -> float:
        return amount * self.cross_rate(from_code, to_code)

    def with_base_rate(self) -> RateSnapshot:
        """Return a copy that carries base -> 1.0 explicitly."""
        if self.base in self.rates:
            return self
        return RateSnapshot(
            base=self.base,
            as_of=self.as_of,
            rates={**self.rates, self.base: 1.0},
        )


class HistoricalDay(_RateModel):
    """Rates for one calendar day inside a HistoricalSeries."""

    day: date
    rates: dict[CurrencyCode, float]

    @field_validator("rates")
    @classmethod
    def rates_are_supported(cls, v: dict[str, float]) -> dict[str, float]:
        return _check_rates(v, supported_only=True)


class RatePoint(_RateModel):
    """A single currency's rate on a single day."""

    day: date
    currency: CurrencyCode
    rate: float


class HistoricalSeries(_RateModel):
    """Ordered per-day rate tables, one entry per day, strictly increasing."""

    base: CurrencyCode = "USD"
    days: list[HistoricalDay] = []

    @field_validator("base")
    @classmethod
    def base_is_supported(cls, v: str) -> str:
        code = _check_code(v)
        if code not in SUPPORTED_CURRENCIES:
            raise ValueError(f"unsupported base currency: {code}")
        return code

    @model_validator(mode="after")
    def days_strictly_increasing(self) -> HistoricalSeries:
        for prev, cur in zip(self.days, self.days[1:]):
            if cur.day == prev.day:
                raise ValueError(f"duplicate date: {cur.day.isoformat()}")
            if cur.day < prev.day:
                raise ValueError(
                    f"dates out of order: {prev.day.isoformat()} before {cur.day.isoformat()}"
                )
        for d in self.days:
            if self.base in d.rates and d.rates[self.base] != 1.0:
                raise ValueError(
                    f"base currency {self.base} must map to 1.0 on {d.day.isoformat()}"
                )
        return self

    @classmethod
    def from_payload(
        cls,
        base: str,
        payload: Mapping[str, Mapping[str, float]] | Iterable[tuple[str, Mapping[str, float]]],
    ) -> HistoricalSeries:
        """Build a series from `{"YYYY-MM-DD": {code: rate}}` or (date, rates) pairs.

        Raises:
            ValidationError: non-canonical date key, duplicate day, bad code,
                unsupported currency, or non-positive rate.
        """
        items = payload.items() if isinstance(payload, Mapping) else payload
        by_day: dict[date, HistoricalDay] = {}
        for key, rates in items:
            day = parse_api_date(key)
            if day in by_day:
                raise ValidationError(
                    f"Duplicate date in payload: {key}",
                    context={"field": "date", "value": key},
                )
            if not isinstance(rates, Mapping):
                raise ValidationError(
                    f"Rates for {key} must be a mapping",
                    context={"field": "rates", "value": key},
                )
            by_day[day] = HistoricalDay(day=day, rates=dict(rates))
        return cls(base=base, days=[by_day[d] for d in sorted(by_day)])

    def __len__(self) -> int:
        return len(self.days)

    @property
    def first_day(self) -> date | None:
        return self.days[0].day if self.days else None

    @property
    def last_day(self) -> date | None:
        return self.days[-1].day if self.days else None

    def dates(self) -> list[date]:
        return [d.day for d in self.days]

    def get(self, day: date) -> HistoricalDay | None:
        for d in self.days:
            if d.day == day:
                return d
        return None

    def currencies(self) -> set[CurrencyCode]:
        codes: set[str] = set()
        for d in self.days:
            codes.update(d.rates)
        return codes

    def between(self, start: date, end: date) -> HistoricalSeries:
        """Sub-series restricted to [start, end] (inclusive)."""
        return HistoricalSeries(
            base=self.base,
            days=[d for d in self.days if start <= d.day <= end],
        )

    def merged_with(self, other: HistoricalSeries) -> HistoricalSeries:
        """Union keyed by day. Days already in self are never replaced."""
        if other.base != self.base and other.days:
            raise ValidationError(
                f"Cannot merge series with base {other.base} into base {self.base}",
                context={"field": "base", "value": other.base},
            )
        by_day = {d.day: d for d in other.days}
        by_day.update({d.day: d for d in self.days})
        return HistoricalSeries(base=self.base, days=[by_day[k] for k in sorted(by_day)])

    def points_for(self, code: str) -> list[RatePoint]:
        """Per-day points for one currency, in date order. Days lacking it are skipped."""
        code = parse_currency_code(code)
        points: list[RatePoint] = []
        for d in self.days:
            if code == self.base:
                rate = 1.0
            elif code in d.rates:
                rate = d.rates[code]
            else:
                continue
            points.append(RatePoint(day=d.day, currency=code, rate=rate))
        return points


# --- Trend Models ---


class TrendRecord(_RateModel):
    """Percentage change and direction of one currency over the trend window."""

    currency: CurrencyCode
    change_percent: float
    direction: TrendDirection
    sparkline: list[float] = []
    window_start: date
    window_end: date

    @field_validator("currency")
    @classmethod
    def currency_is_code(cls, v: str) -> str:
        return _check_code(v)

    @model_validator(mode="after")
    def window_ordered(self) -> TrendRecord:
        if self.window_start > self.window_end:
            raise ValueError("window_start must be <= window_end")
        return self
