from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from sprint_forecast.forecasting.domain.models import ContributorSampler, MetricStatistics, SamplingMode


@dataclass(frozen=True)
class HistoricalResampler(ContributorSampler):
    """Empirical bootstrap over the zero-inclusive per-sprint history.

    A sprint where the contributor delivered nothing is a legitimate outcome
    and is drawn as often as any other sprint.
    """

    uniforms_per_draw: int = 1

    def sample(self, history: MetricStatistics, uniforms: np.ndarray) -> np.ndarray:
        values = np.asarray(history.values, dtype=float)
        if values.size == 0:
            return np.zeros(uniforms.size, dtype=float)
        idx = np.minimum((uniforms * values.size).astype(int), values.size - 1)
        return values[idx]


@dataclass(frozen=True)
class NormalSampler(ContributorSampler):
    """Normal draws from the contributor's mean/std-dev via Box-Muller.

    Draws are floored at zero and rounded to whole units.
    """

    uniforms_per_draw: int = 2

    def sample(self, history: MetricStatistics, uniforms: np.ndarray) -> np.ndarray:
        u1 = uniforms[0::2]
        u2 = uniforms[1::2]
        # 1 - u keeps the log argument in (0, 1].
        z = np.sqrt(-2.0 * np.log1p(-u1)) * np.cos(2.0 * math.pi * u2)
        draws = history.mean + z * history.std_dev
        return np.maximum(0.0, np.floor(draws + 0.5))


def sampler_for(mode: SamplingMode) -> ContributorSampler:
    if mode == "historical":
        return HistoricalResampler()
    if mode == "normal":
        return NormalSampler()
    raise ValueError(f"Unknown sampling mode: {mode!r}")
