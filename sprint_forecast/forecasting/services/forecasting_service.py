from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence, Union

from sprint_forecast.common.seeding import RandomSource, make_random_source
from sprint_forecast.config import ForecastConfig, HorizonConfig, SimulationConfig
from sprint_forecast.forecasting.aggregation.contributors import (
    aggregate_by_contributor,
    contributor_statistics,
    team_metrics,
)
from sprint_forecast.forecasting.aggregation.team import team_series
from sprint_forecast.forecasting.aggregation.window import check_data_readiness, finished_sprints, select_window
from sprint_forecast.forecasting.domain.models import (
    ErrorKind,
    ForecastAnalysis,
    ForecastFailure,
    HorizonForecast,
    Metric,
    SprintWindow,
    TeamSeries,
    Ticket,
)
from sprint_forecast.forecasting.scenarios.scenarios import generate_scenarios
from sprint_forecast.forecasting.simulator.horizon import HorizonForecaster
from sprint_forecast.forecasting.simulator.resampling import ResamplingForecaster


logger = logging.getLogger(__name__)

AnalysisOutcome = Union[ForecastAnalysis, ForecastFailure]


@dataclass
class ForecastingService:
    """Runs one forecast request end to end over an in-memory ticket set.

    Holds no state between calls apart from its configuration.
    """

    config: ForecastConfig = field(default_factory=ForecastConfig)
    resampler: ResamplingForecaster = field(default_factory=ResamplingForecaster)
    horizon_forecaster: HorizonForecaster = field(default_factory=HorizonForecaster)

    def random_source(self, seed: int | None = None) -> RandomSource:
        return make_random_source(seed if seed is not None else self.config.seed)

    def resolve_window(
        self,
        tickets: Sequence[Ticket],
        window: SprintWindow | None = None,
        review_sprint: int | None = None,
        sprints_to_analyze: int | None = None,
    ) -> tuple[SprintWindow, int | None]:
        if window is not None:
            next_sprint = window.sprints[-1] + 1 if len(window) else None
            return window, next_sprint
        return select_window(
            tickets,
            sprints_to_analyze=sprints_to_analyze or self.config.window.sprints_to_analyze,
            review_sprint=review_sprint if review_sprint is not None else self.config.window.review_sprint,
        )

    def analyze(
        self,
        tickets: Sequence[Ticket],
        window: SprintWindow | None = None,
        options: SimulationConfig | None = None,
        source: RandomSource | None = None,
        review_sprint: int | None = None,
        sprints_to_analyze: int | None = None,
    ) -> AnalysisOutcome:
        """Contributor statistics, next-sprint simulation and scenarios."""
        readiness = check_data_readiness(tickets)
        if not readiness.is_valid:
            return ForecastFailure(kind=ErrorKind.MISSING_ASSIGNEE, message=readiness.message or "")
        if readiness.message:
            logger.info(readiness.message)

        window, next_sprint = self.resolve_window(tickets, window, review_sprint, sprints_to_analyze)
        if len(window) == 0:
            return ForecastFailure(kind=ErrorKind.NO_SPRINTS, message="No completed sprint found in the data")

        records = aggregate_by_contributor(tickets, window)
        stats = contributor_statistics(records, window)
        simulation = self.resampler.simulate(
            stats,
            options or self.config.simulation,
            source if source is not None else self.random_source(),
        )
        return ForecastAnalysis(
            window=window,
            next_sprint=next_sprint,
            contributors=tuple(stats),
            simulation=simulation,
            scenarios=generate_scenarios(simulation),
            team_metrics=team_metrics(stats, window),
            has_enough_data=any(c.is_reliable for c in stats),
        )

    def recalculate_with_exclusions(
        self,
        tickets: Sequence[Ticket],
        excluded_contributors: Sequence[str],
        window: SprintWindow,
        source: RandomSource | None = None,
    ) -> AnalysisOutcome:
        """Re-run the simulation over the same window with some people away."""
        options = self.config.simulation.model_copy(
            update={"excluded_contributors": tuple(excluded_contributors)}
        )
        return self.analyze(tickets, window=window, options=options, source=source)

    def team_series(
        self,
        tickets: Sequence[Ticket],
        metric: Metric = "tickets",
        window: SprintWindow | None = None,
    ) -> TeamSeries:
        if window is None:
            window = SprintWindow(tuple(finished_sprints(tickets)))
        return team_series(tickets, window, metric=metric)

    def how_many(
        self,
        tickets: Sequence[Ticket],
        metric: Metric = "tickets",
        window: SprintWindow | None = None,
        options: HorizonConfig | None = None,
    ) -> HorizonForecast:
        """Projected team output over several future horizons."""
        series = self.team_series(tickets, metric=metric, window=window)
        logger.info("How-many forecast on %s over sprints %s", metric, series.sprints)
        return self.horizon_forecaster.forecast_horizons(series.values, options or self.config.horizon)
