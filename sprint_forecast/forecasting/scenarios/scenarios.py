from __future__ import annotations

from dataclasses import dataclass

from sprint_forecast.forecasting.domain.models import MetricSimulation, Scenario, SimulationResult


@dataclass(frozen=True)
class ScenarioTemplate:
    scenario_id: str
    label: str
    description: str
    confidence: int  # chance, in percent, of doing better than this scenario
    percentile: int


SCENARIO_TEMPLATES: tuple[ScenarioTemplate, ...] = (
    ScenarioTemplate(
        scenario_id="pessimistic",
        label="Pessimistic (P15)",
        description="85% chance of doing better",
        confidence=85,
        percentile=15,
    ),
    ScenarioTemplate(
        scenario_id="realistic",
        label="Realistic (P50)",
        description="Median target based on history",
        confidence=50,
        percentile=50,
    ),
    ScenarioTemplate(
        scenario_id="optimistic",
        label="Optimistic (P85)",
        description="15% chance of doing better",
        confidence=15,
        percentile=85,
    ),
)


def _at(metric: MetricSimulation, p: int) -> int:
    return {15: metric.p15, 50: metric.p50, 85: metric.p85}[p]


def generate_scenarios(result: SimulationResult) -> tuple[Scenario, ...]:
    """The pessimistic, realistic and optimistic next-sprint scenarios."""
    return tuple(
        Scenario(
            id=t.scenario_id,
            label=t.label,
            description=t.description,
            confidence=t.confidence,
            throughput=_at(result.throughput, t.percentile),
            story_points=_at(result.story_points, t.percentile),
        )
        for t in SCENARIO_TEMPLATES
    )
