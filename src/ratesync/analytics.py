"""Cross rates, range statistics and chart sampling over rate points."""

from __future__ import annotations

import logging
import math

import numpy as np
from pydantic import BaseModel, ConfigDict

from ratesync.core.exceptions import ValidationError
from ratesync.core.models import RatePoint, TrendDirection

logger = logging.getLogger(__name__)

# Daily returns at or beyond this magnitude are data errors, not moves.
_MAX_DAILY_RETURN = 10.0


class RangeStatistics(BaseModel):
    """Summary of one currency over a date range."""

    model_config = ConfigDict(frozen=True)

    currency: str
    points: int
    current: float
    highest: float
    lowest: float
    average: float
    change: float
    change_percent: float
    volatility: float
    direction: TrendDirection


def rebase_points(points: list[RatePoint], base_points: list[RatePoint]) -> list[RatePoint]:
    """Re-express `points` against another currency, day by day.

    Each day uses that day's own rate of the new base. Days missing from
    either side are dropped.
    """
    base_by_day = {p.day: p.rate for p in base_points}
    return [
        RatePoint(day=p.day, currency=p.currency, rate=p.rate / base_by_day[p.day])
        for p in points
        if p.day in base_by_day
    ]


class RangeAnalyzer:
    """Computes range statistics for chart display.

    Parameters
    ----------
    annualization_factor : int
        Trading days per year used to annualize volatility. Default: 252.
    stable_epsilon : float
        Absolute percent change below which the direction is "stable".
    """

    def __init__(self, annualization_factor: int = 252, stable_epsilon: float = 0.01) -> None:
        self._af = annualization_factor
        self._epsilon = stable_epsilon

    def summarize(self, points: list[RatePoint]) -> RangeStatistics:
        if not points:
            raise ValidationError(
                "Cannot summarize an empty range",
                context={"field": "points", "value": 0},
            )
        rates = np.array([p.rate for p in points], dtype=float)
        first, current = float(rates[0]), float(rates[-1])
        change = current - first
        change_percent = change / first * 100 if first else 0.0
        return RangeStatistics(
            currency=points[0].currency,
            points=len(points),
            current=current,
            highest=float(rates.max()),
            lowest=float(rates.min()),
            average=float(rates.mean()),
            change=change,
            change_percent=change_percent,
            volatility=self.annualized_volatility(rates),
            direction=self._direction(change_percent),
        )

    def annualized_volatility(self, rates: np.ndarray) -> float:
        """Std of daily returns, annualized, in percent. Zero with < 2 returns."""
        if len(rates) < 3:
            return 0.0
        returns = np.diff(rates) / rates[:-1]
        returns = returns[np.isfinite(returns) & (np.abs(returns) < _MAX_DAILY_RETURN)]
        if len(returns) < 2:
            return 0.0
        vol = float(np.std(returns, ddof=1)) * math.sqrt(self._af) * 100
        return vol if math.isfinite(vol) else 0.0

    def _direction(self, change_percent: float) -> TrendDirection:
        if abs(change_percent) < self._epsilon:
            return TrendDirection.STABLE
        return TrendDirection.UP if change_percent > 0 else TrendDirection.DOWN


def sample_points(points: list[RatePoint], max_points: int = 100) -> list[RatePoint]:
    """Thin a series for charting.

    Evenly spaced picks, always keeping the first, last, lowest and
    highest points. Output stays in date order.
    """
    if max_points < 4:
        raise ValidationError(
            f"max_points must be at least 4, got {max_points}",
            context={"field": "max_points", "value": max_points},
        )
    if len(points) <= max_points:
        return list(points)

    rates = np.array([p.rate for p in points], dtype=float)
    keep = {0, len(points) - 1, int(rates.argmin()), int(rates.argmax())}
    slots = max_points - len(keep)
    for idx in np.linspace(0, len(points) - 1, num=slots + 2)[1:-1]:
        keep.add(int(round(idx)))
    return [points[i] for i in sorted(keep)]
