"""API-specific request/response schemas (Pydantic v2)."""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel


# -- Error --


class ErrorResponse(BaseModel):
    """Standard error envelope."""

    error: str
    detail: str | None = None


# -- Health --


class HealthResponse(BaseModel):
    status: str
    version: str
    storage_backend: str
    historical_days: int
    snapshots: int


# -- Rates --


class RatesResponse(BaseModel):
    """Current rate table."""

    base: str
    as_of: date
    rates: dict[str, float]


class RatePointResponse(BaseModel):
    day: date
    rate: float


class HistoryResponse(BaseModel):
    """Per-day rates for one currency, with summary statistics."""

    currency: str
    base: str
    start: date
    end: date
    points: list[RatePointResponse]
    statistics: dict[str, float | int | str] | None = None


# -- Trends --


class TrendResponse(BaseModel):
    currency: str
    change_percent: float
    direction: str
    sparkline: list[float]
    window_start: date
    window_end: date


class TrendListResponse(BaseModel):
    total: int
    items: list[TrendResponse]


# -- Conversion --


class ConversionResponse(BaseModel):
    amount: float
    from_currency: str
    to_currency: str
    rate: float
    result: float
    as_of: date


# -- Status --


class StatusResponse(BaseModel):
    today: date
    last_fetch: str | None
    should_fetch: bool
    latest_publication_day: date
    connected: bool
    store: dict[str, int | str | None]
    cache: list[str]
    in_flight: list[str]
