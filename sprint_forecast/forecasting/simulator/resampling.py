from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from sprint_forecast.common.seeding import RandomSource, draw_uniform, make_random_source
from sprint_forecast.config import SimulationConfig
from sprint_forecast.forecasting.domain.models import (
    ContributorSampler,
    ContributorStatistics,
    MetricSimulation,
    MetricStatistics,
    SimulationResult,
)
from sprint_forecast.forecasting.priors.sampling import sampler_for
from sprint_forecast.forecasting.stats.primitives import (
    frequency_table,
    mean,
    percentile,
    round_half_up,
    standard_deviation,
)


logger = logging.getLogger(__name__)

PESSIMISTIC_PERCENTILE = 15
REALISTIC_PERCENTILE = 50
OPTIMISTIC_PERCENTILE = 85


def _summarize(samples: np.ndarray) -> MetricSimulation:
    values = samples.tolist()
    return MetricSimulation(
        p15=round_half_up(percentile(values, PESSIMISTIC_PERCENTILE)),
        p50=round_half_up(percentile(values, REALISTIC_PERCENTILE)),
        p85=round_half_up(percentile(values, OPTIMISTIC_PERCENTILE)),
        mean=round_half_up(mean(values)),
        std_dev=round_half_up(standard_deviation(values) * 10) / 10,
        distribution=frequency_table(values),
    )


def _empty_metric() -> MetricSimulation:
    return MetricSimulation(p15=0, p50=0, p85=0, mean=0, std_dev=0.0, distribution=())


@dataclass
class ResamplingForecaster:
    """Bottom-up Monte Carlo forecast of the next sprint.

    Each trial draws one throughput and one story-point value per active
    contributor and sums them into a team total. The trials form an empirical
    distribution from which the P15/P50/P85 scenarios are read.
    """

    def simulate(
        self,
        contributor_stats: Sequence[ContributorStatistics],
        options: SimulationConfig | None = None,
        source: RandomSource | None = None,
    ) -> SimulationResult:
        options = options or SimulationConfig()
        source = source if source is not None else make_random_source()
        excluded = set(options.excluded_contributors)

        active = [c for c in contributor_stats if c.name not in excluded and c.sprints_active > 0]
        if not active:
            # Nothing to simulate. The zeros are placeholders, see SimulationResult.is_empty.
            logger.warning(
                "No active contributors left to simulate (%d excluded)",
                len(excluded),
            )
            return SimulationResult(
                throughput=_empty_metric(),
                story_points=_empty_metric(),
                iterations=0,
                contributors=(),
                excluded_contributors=tuple(options.excluded_contributors),
                sampling_mode=options.sampling_mode,
            )

        sampler = sampler_for(options.sampling_mode)
        n = options.iterations
        throughput = np.zeros(n, dtype=float)
        story_points = np.zeros(n, dtype=float)

        for start in range(0, n, options.chunk_size):
            stop = min(n, start + options.chunk_size)
            for c in active:
                throughput[start:stop] += self._draw(sampler, c.throughput, stop - start, source)
                story_points[start:stop] += self._draw(sampler, c.story_points, stop - start, source)
            logger.debug("Simulated %d/%d trials", stop, n)

        logger.info(
            "Simulated %d trials over %d contributors (%s sampling)",
            n,
            len(active),
            options.sampling_mode,
        )
        return SimulationResult(
            throughput=_summarize(throughput),
            story_points=_summarize(story_points),
            iterations=n,
            contributors=tuple(c.name for c in active),
            excluded_contributors=tuple(options.excluded_contributors),
            sampling_mode=options.sampling_mode,
        )

    @staticmethod
    def _draw(
        sampler: ContributorSampler,
        history: MetricStatistics,
        n: int,
        source: RandomSource,
    ) -> np.ndarray:
        uniforms = draw_uniform(source, n * sampler.uniforms_per_draw)
        return sampler.sample(history, uniforms)
