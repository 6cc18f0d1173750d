from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Sequence

from sprint_forecast.config import HorizonConfig
from sprint_forecast.forecasting.domain.models import (
    ErrorKind,
    ForecastFailure,
    HorizonForecast,
    HorizonMetadata,
    HorizonProjection,
    HorizonResult,
    TrendDescriptor,
)
from sprint_forecast.forecasting.stats.primitives import (
    classify_stability,
    detect_outliers_low,
    detect_trend,
    round_half_up,
    weighted_stats,
)


logger = logging.getLogger(__name__)


def validate_series(values: Sequence[float], min_sprints: int = 2) -> ForecastFailure | None:
    """None when the series can be forecast, else the reason it cannot."""
    if len(values) < min_sprints:
        return ForecastFailure(
            kind=ErrorKind.INSUFFICIENT_DATA,
            message=f"At least {min_sprints} sprints of history are required, got {len(values)}",
        )
    if any(v < 0 for v in values):
        return ForecastFailure(
            kind=ErrorKind.INVALID_INPUT,
            message="Throughput and story points cannot be negative",
        )
    return None


def recency_weights(count: int, options: HorizonConfig) -> list[float]:
    """The last ``recent_sprints`` points share ``recent_weight_ratio`` of the mass.

    Short series, or weighting disabled, get uniform weights.
    """
    if count == 0:
        return []
    if not options.use_weighting or count <= options.recent_sprints:
        return [1.0 / count] * count
    recent = options.recent_sprints
    older = count - recent
    return [(1.0 - options.recent_weight_ratio) / older] * older + [options.recent_weight_ratio / recent] * recent


@dataclass
class HorizonForecaster:
    """Closed-form "how many over N sprints" projection of team output.

    The per-sprint distribution is treated as normal: over h sprints the mean
    scales with h and the spread with sqrt(h). An upward trend adds a bonus
    that shrinks geometrically with each further sprint; flat or falling
    trends never lower the estimate. Higher percentiles are discounted by a
    safety factor.
    """

    def forecast_horizons(
        self,
        series: Sequence[float],
        options: HorizonConfig | None = None,
    ) -> HorizonForecast:
        options = options or HorizonConfig()
        raw = [float(v) for v in series]

        failure = validate_series(raw, options.min_sprints)
        if failure is not None:
            logger.info("Horizon forecast rejected: %s", failure.message)
            return failure

        data = raw
        outliers: tuple[float, ...] = ()
        outlier_indices: tuple[int, ...] = ()
        if options.exclude_outliers:
            report = detect_outliers_low(raw)
            data = list(report.cleaned)
            outliers, outlier_indices = report.outliers, report.outlier_indices
            if len(data) < options.min_sprints:
                return ForecastFailure(
                    kind=ErrorKind.INSUFFICIENT_DATA,
                    message="Not enough sprints left after removing outliers",
                )
            if outliers:
                logger.info("Excluded low outlier sprints %s at %s", outliers, outlier_indices)

        weights = recency_weights(len(data), options)
        mu, sigma = weighted_stats(data, weights)
        trend = detect_trend(raw)
        stability = classify_stability(data)
        boost = self._trend_boost(trend, options)

        projections: dict[int, HorizonProjection] = {}
        for h in options.horizons:
            horizon_mean = h * mu
            if boost > 0 and trend.slope > 0:
                decay_sum = (1.0 - options.trend_decay**h) / (1.0 - options.trend_decay)
                horizon_mean += boost * trend.slope * decay_sum
            horizon_sd = math.sqrt(h) * sigma

            pct: dict[int, int] = {}
            for p in options.percentiles:
                value = (horizon_mean + options.z_scores[p] * horizon_sd) * options.safety_factors[p]
                pct[p] = round_half_up(max(0.0, value))
            projections[h] = HorizonProjection(
                sprints=h,
                weeks=h * options.sprint_length_weeks,
                mean=round_half_up(horizon_mean),
                percentiles=pct,
            )

        return HorizonResult(
            projections=projections,
            metadata=HorizonMetadata(
                sprints_analyzed=len(raw),
                sprints_used=len(data),
                outliers=outliers,
                outlier_indices=outlier_indices,
                trend=trend,
                stability=stability,
                base_mean=round_half_up(mu * 10) / 10,
                base_std_dev=round_half_up(sigma * 10) / 10,
                use_weighting=options.use_weighting,
                exclude_outliers=options.exclude_outliers,
            ),
        )

    @staticmethod
    def _trend_boost(trend: TrendDescriptor, options: HorizonConfig) -> float:
        if trend.direction != "up":
            return 0.0
        if trend.strength == "strong":
            return options.strong_trend_boost
        if trend.strength == "moderate":
            return options.moderate_trend_boost
        return 0.0
