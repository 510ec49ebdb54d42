"""FastAPI route definitions for the ratesync API."""

from __future__ import annotations

from datetime import date, timedelta

from fastapi import APIRouter, Depends, Query, Response

import ratesync
from ratesync.analytics import RangeAnalyzer, sample_points
from ratesync.api.deps import get_config, get_orchestrator
from ratesync.api.schemas import (
    ConversionResponse,
    HealthResponse,
    HistoryResponse,
    RatePointResponse,
    RatesResponse,
    StatusResponse,
    TrendListResponse,
    TrendResponse,
)
from ratesync.core.models import RateSnapshot, TrendRecord
from ratesync.sync.orchestrator import SyncOrchestrator

router = APIRouter()


def _rates_response(snapshot: RateSnapshot) -> RatesResponse:
    return RatesResponse(base=snapshot.base, as_of=snapshot.as_of, rates=snapshot.rates)


def _trend_list(records: dict[str, TrendRecord]) -> TrendListResponse:
    return TrendListResponse(
        total=len(records),
        items=[
            TrendResponse(
                currency=r.currency,
                change_percent=r.change_percent,
                direction=str(r.direction),
                sparkline=r.sparkline,
                window_start=r.window_start,
                window_end=r.window_end,
            )
            for r in sorted(records.values(), key=lambda r: r.currency)
        ],
    )


# -- Health --


@router.get("/health", response_model=HealthResponse)
async def health_check(
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
    config=Depends(get_config),
):
    """System health and basic statistics."""
    stats = await orchestrator.store.get_statistics()
    healthy = await orchestrator.store.health_check()
    return HealthResponse(
        status="ok" if healthy else "degraded",
        version=ratesync.__version__,
        storage_backend=str(config.storage.backend.value),
        historical_days=stats["historical_days"],
        snapshots=stats["snapshots"],
    )


# -- Rates --


@router.get("/rates", response_model=RatesResponse)
async def get_rates(
    refresh: bool = Query(False, description="Fetch first if the source may have published"),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
):
    """Current rate table, cache first."""
    if refresh:
        snapshot = await orchestrator.refresh_if_due()
    else:
        snapshot = await orchestrator.load_current_rates()
    return _rates_response(snapshot)


@router.post("/rates/refresh", response_model=RatesResponse)
async def refresh_rates(orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    """Unconditional refetch. 503 when the source cannot be reached."""
    return _rates_response(await orchestrator.trigger_refresh())


# -- History --


@router.get("/history/{currency}", response_model=HistoryResponse)
async def get_history(
    currency: str,
    start: date | None = Query(None, description="Defaults to 30 days before end"),
    end: date | None = Query(None, description="Defaults to today"),
    base: str | None = Query(None, min_length=3, max_length=3),
    max_points: int = Query(100, ge=4, le=1000),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
):
    """Per-day rates for one currency, sampled for charting."""
    end = end or orchestrator.policy.today(orchestrator.now())
    start = start or end - timedelta(days=30)
    points = await orchestrator.load_historical_range(currency, start, end, base=base)

    statistics = None
    if points:
        stats = RangeAnalyzer().summarize(points)
        statistics = stats.model_dump(mode="json", exclude={"currency"})

    return HistoryResponse(
        currency=currency.upper(),
        base=(base or orchestrator.base_currency).upper(),
        start=start,
        end=end,
        points=[RatePointResponse(day=p.day, rate=p.rate) for p in sample_points(points, max_points)],
        statistics=statistics,
    )


# -- Trends --


@router.get("/trends", response_model=TrendListResponse)
async def get_trends(orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    """Trailing-window trends. 409 while there is not enough history."""
    return _trend_list(await orchestrator.load_trends())


@router.post("/trends/recompute", response_model=TrendListResponse)
async def recompute_trends(orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    return _trend_list(await orchestrator.compute_trends())


# -- Conversion --


@router.get("/convert", response_model=ConversionResponse)
async def convert(
    amount: float = Query(..., ge=0),
    from_currency: str = Query(..., alias="from", min_length=3, max_length=3),
    to_currency: str = Query(..., alias="to", min_length=3, max_length=3),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
):
    """Convert an amount using the current cross rate."""
    snapshot = await orchestrator.load_current_rates()
    rate = snapshot.cross_rate(from_currency, to_currency)
    return ConversionResponse(
        amount=amount,
        from_currency=from_currency.upper(),
        to_currency=to_currency.upper(),
        rate=rate,
        result=amount * rate,
        as_of=snapshot.as_of,
    )


# -- Status / maintenance --


@router.get("/status", response_model=StatusResponse)
async def get_status(orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    """Fetch cursor, schedule decision and storage coverage."""
    return StatusResponse(**await orchestrator.status())


@router.delete("/data", status_code=204)
async def clear_data(orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    """Wipe cache, store and fetch cursor."""
    await orchestrator.clear_all()
    return Response(status_code=204)
