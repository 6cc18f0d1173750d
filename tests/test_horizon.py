from __future__ import annotations

import math

import pytest

from sprint_forecast.config import HorizonConfig
from sprint_forecast.forecasting.domain.models import ErrorKind, ForecastFailure, HorizonResult
from sprint_forecast.forecasting.simulator.horizon import HorizonForecaster, recency_weights, validate_series
from sprint_forecast.forecasting.stats.primitives import round_half_up


def _forecast(series: list[float], **options: object) -> HorizonResult:
    res = HorizonForecaster().forecast_horizons(series, HorizonConfig(**options))
    assert isinstance(res, HorizonResult), res
    return res


def test_validate_series() -> None:
    short = validate_series([5])
    assert short is not None and short.kind is ErrorKind.INSUFFICIENT_DATA
    negative = validate_series([5, -1])
    assert negative is not None and negative.kind is ErrorKind.INVALID_INPUT
    assert validate_series([0, 0]) is None


def test_failures_are_returned_not_raised() -> None:
    res = HorizonForecaster().forecast_horizons([4])
    assert isinstance(res, ForecastFailure)
    assert not res.success
    assert res.kind is ErrorKind.INSUFFICIENT_DATA


def test_end_to_end_team_series() -> None:
    res = _forecast([5, 6, 7, 8, 7, 9])
    meta = res.metadata

    assert meta.base_mean == 7.0
    assert meta.base_std_dev == 1.4
    assert meta.sprints_analyzed == meta.sprints_used == 6
    assert meta.trend.slope > 0
    assert meta.trend.relative_change < 0.10
    assert meta.trend.strength == "moderate"

    one = res.projections[1]
    assert (one.p50, one.p85, one.p95, one.mean) == (7, 8, 9, 7)
    two = res.projections[2]
    assert (two.p50, two.p85, two.p95, two.mean) == (15, 16, 16, 15)

    for p in res.projections.values():
        assert p.p50 <= p.p85
    assert list(res.by_weeks()) == [2, 4, 6, 8, 12]


def test_zero_trend_p50_is_undiscounted_mean() -> None:
    series = [4, 8, 8, 4]
    res = _forecast(series)
    sigma = math.sqrt(16 / 3)

    assert res.metadata.trend.slope == pytest.approx(0.0, abs=1e-12)
    for h, p in res.projections.items():
        assert p.p50 == round_half_up(6 * h)
        assert p.mean == 6 * h
        assert p.p85 == round_half_up((6 * h + 1.036 * math.sqrt(h) * sigma) * 0.95)
        assert p.p95 == round_half_up((6 * h + 1.645 * math.sqrt(h) * sigma) * 0.90)


def test_downward_trend_never_lowers_the_estimate() -> None:
    res = _forecast([10, 8, 6, 4])
    assert res.metadata.trend.direction == "down"
    assert res.projections[1].mean == 7
    assert res.projections[6].mean == 42


def test_strong_upward_trend_adds_decaying_bonus() -> None:
    res = _forecast([1, 2, 3, 4, 5])
    # 3 per sprint plus 0.75 * slope * (1 - 0.85^h) / 0.15
    assert res.projections[1].mean == 4
    assert res.projections[2].mean == round_half_up(6 + 0.75 * 1.85)

    flat = _forecast([1, 2, 3, 4, 5], strong_trend_boost=0.0)
    assert flat.projections[1].mean == 3


def test_constant_series_is_highly_stable() -> None:
    res = _forecast([6, 6, 6, 6])
    assert res.metadata.stability.level == "high"
    assert res.metadata.stability.cv == 0.0
    one = res.projections[1]
    assert (one.p50, one.p85, one.p95) == (6, 6, 5)


def test_outlier_exclusion_uses_cleaned_data_but_raw_trend() -> None:
    res = _forecast([10, 10, 10, 10, 0], exclude_outliers=True)
    meta = res.metadata

    assert meta.sprints_analyzed == 5
    assert meta.sprints_used == 4
    assert meta.outliers == (0.0,)
    assert meta.outlier_indices == (4,)
    assert meta.base_mean == 10.0
    assert meta.trend.direction == "down"
    assert res.projections[1].p50 == 10


def test_outlier_exclusion_can_leave_too_little_data() -> None:
    res = HorizonForecaster().forecast_horizons(
        [0, 0, 10, 10],
        HorizonConfig(exclude_outliers=True, min_sprints=3),
    )
    assert isinstance(res, ForecastFailure)
    assert res.kind is ErrorKind.INSUFFICIENT_DATA


def test_recency_weighting() -> None:
    weights = recency_weights(6, HorizonConfig(use_weighting=True))
    assert weights == pytest.approx([0.125] * 4 + [0.25] * 2)
    assert recency_weights(2, HorizonConfig(use_weighting=True)) == [0.5, 0.5]
    assert recency_weights(3, HorizonConfig()) == pytest.approx([1 / 3] * 3)

    res = _forecast([4, 4, 4, 4, 8, 8], use_weighting=True)
    assert res.metadata.base_mean == 6.0
    assert res.metadata.use_weighting


def test_custom_horizons_and_sprint_length() -> None:
    res = _forecast([3, 3, 3], horizons=[5, 1], sprint_length_weeks=3)
    assert sorted(res.projections) == [1, 5]
    assert list(res.by_weeks()) == [3, 15]
    assert res.projections[5].p50 == 15


def test_custom_percentile_set() -> None:
    res = HorizonForecaster().forecast_horizons([6, 6, 6], HorizonConfig(percentiles=(50, 85)))

    assert isinstance(res, HorizonResult)
    one = res.projections[1]
    assert set(one.percentiles) == {50, 85}
    assert one.p50 == 6
    assert one.p95 is None
