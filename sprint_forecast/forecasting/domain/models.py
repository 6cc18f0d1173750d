from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Literal, Mapping, Protocol, Union

import numpy as np


Metric = Literal["tickets", "story_points"]
SamplingMode = Literal["historical", "normal"]
TrendDirection = Literal["up", "down", "stable"]
TrendStrength = Literal["strong", "moderate", "none"]
StabilityLevel = Literal["high", "moderate", "low", "unknown"]


@dataclass(frozen=True)
class Ticket:
    """A delivered or pending work item as handed over by ingestion."""

    sprints: tuple[int, ...]  # chronological assignment order
    is_finished: bool
    closed_at: date | None = None
    story_points: float = 0.0
    assignee: str | None = None
    key: str = ""

    @property
    def closure_sprint(self) -> int | None:
        return self.sprints[-1] if self.sprints else None

    @property
    def has_assignee(self) -> bool:
        return bool(self.assignee and self.assignee.strip())


@dataclass(frozen=True)
class SprintWindow:
    """Strictly ascending sprint numbers under analysis.

    Positions in the window index the dense per-sprint arrays built by the
    aggregators.
    """

    sprints: tuple[int, ...]
    _positions: Mapping[int, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        sprints = tuple(int(s) for s in self.sprints)
        if any(s <= 0 for s in sprints):
            raise ValueError(f"Sprint numbers must be positive: {sprints}")
        if any(b <= a for a, b in zip(sprints, sprints[1:])):
            raise ValueError(f"Sprint window must be strictly ascending: {sprints}")
        object.__setattr__(self, "sprints", sprints)
        object.__setattr__(self, "_positions", {s: i for i, s in enumerate(sprints)})

    def __len__(self) -> int:
        return len(self.sprints)

    def __contains__(self, sprint: object) -> bool:
        return sprint in self._positions

    def position(self, sprint: int) -> int:
        try:
            return self._positions[sprint]
        except KeyError:
            raise ValueError(f"Sprint {sprint} is outside the window {self.sprints}") from None


@dataclass(frozen=True, eq=False)
class ContributorSprintRecord:
    """Dense per-sprint delivery of one contributor over a SprintWindow."""

    name: str
    throughput: np.ndarray  # int, one slot per window position
    story_points: np.ndarray  # float, one slot per window position

    @property
    def sprints_active(self) -> int:
        return int(np.count_nonzero(self.throughput))


@dataclass(frozen=True)
class MetricStatistics:
    total: float
    values: tuple[float, ...]
    mean: float
    std_dev: float
    min: float
    max: float
    p15: int
    p50: int
    p85: int


@dataclass(frozen=True)
class ContributorStatistics:
    name: str
    sprints_analyzed: int
    sprints_active: int
    throughput: MetricStatistics
    story_points: MetricStatistics
    avg_points_per_ticket: float
    is_reliable: bool


@dataclass(frozen=True)
class DistributionBucket:
    value: float
    count: int
    percentage: float


@dataclass(frozen=True)
class MetricSimulation:
    p15: int
    p50: int
    p85: int
    mean: int
    std_dev: float
    distribution: tuple[DistributionBucket, ...] = ()


@dataclass(frozen=True)
class SimulationResult:
    throughput: MetricSimulation
    story_points: MetricSimulation
    iterations: int
    contributors: tuple[str, ...]
    excluded_contributors: tuple[str, ...] = ()
    sampling_mode: SamplingMode = "historical"

    @property
    def is_empty(self) -> bool:
        """True when nobody was left to simulate and the zeros are placeholders."""
        return not self.contributors


@dataclass(frozen=True)
class Scenario:
    id: str
    label: str
    description: str
    confidence: int
    throughput: int
    story_points: int


@dataclass(frozen=True)
class TrendDescriptor:
    slope: float
    relative_change: float
    direction: TrendDirection
    strength: TrendStrength


@dataclass(frozen=True)
class StabilityDescriptor:
    cv: float
    level: StabilityLevel


@dataclass(frozen=True)
class OutlierReport:
    cleaned: tuple[float, ...]
    outliers: tuple[float, ...]
    outlier_indices: tuple[int, ...]


@dataclass(frozen=True)
class TeamSeries:
    sprints: tuple[int, ...]
    values: tuple[float, ...]
    metric: Metric = "tickets"


@dataclass(frozen=True)
class SprintTotals:
    sprint: int
    throughput: int
    story_points: float


@dataclass(frozen=True)
class TeamMetricSummary:
    values: tuple[float, ...]
    mean: float
    std_dev: float
    trend_pct: int  # change between the last two sprints, in percent


@dataclass(frozen=True)
class TeamMetrics:
    sprints: tuple[int, ...]
    sprint_totals: tuple[SprintTotals, ...]
    throughput: TeamMetricSummary
    story_points: TeamMetricSummary
    team_size: int
    active_contributors: int


class ErrorKind(str, Enum):
    INSUFFICIENT_DATA = "insufficient_data"
    INVALID_INPUT = "invalid_input"
    NO_SPRINTS = "no_sprints"
    MISSING_ASSIGNEE = "missing_assignee"


@dataclass(frozen=True)
class ForecastFailure:
    kind: ErrorKind
    message: str

    @property
    def success(self) -> bool:
        return False


@dataclass(frozen=True)
class HorizonProjection:
    sprints: int
    weeks: int
    mean: int
    percentiles: Mapping[int, int]

    @property
    def p50(self) -> int | None:
        return self.percentiles.get(50)

    @property
    def p85(self) -> int | None:
        return self.percentiles.get(85)

    @property
    def p95(self) -> int | None:
        return self.percentiles.get(95)


@dataclass(frozen=True)
class HorizonMetadata:
    sprints_analyzed: int
    sprints_used: int
    outliers: tuple[float, ...]
    outlier_indices: tuple[int, ...]
    trend: TrendDescriptor
    stability: StabilityDescriptor
    base_mean: float
    base_std_dev: float
    use_weighting: bool
    exclude_outliers: bool


@dataclass(frozen=True)
class HorizonResult:
    projections: Mapping[int, HorizonProjection]  # keyed by horizon in sprints
    metadata: HorizonMetadata

    @property
    def success(self) -> bool:
        return True

    def by_weeks(self) -> dict[int, HorizonProjection]:
        return {p.weeks: p for p in sorted(self.projections.values(), key=lambda p: p.sprints)}


HorizonForecast = Union[HorizonResult, ForecastFailure]


@dataclass(frozen=True)
class DataReadiness:
    has_assignee: bool
    has_story_points: bool
    is_valid: bool
    message: str | None = None


@dataclass(frozen=True)
class ForecastAnalysis:
    window: SprintWindow
    next_sprint: int | None
    contributors: tuple[ContributorStatistics, ...]
    simulation: SimulationResult
    scenarios: tuple[Scenario, ...]
    team_metrics: TeamMetrics
    has_enough_data: bool


class ContributorSampler(Protocol):
    """Draws simulated per-sprint values for one contributor and metric."""

    uniforms_per_draw: int

    def sample(self, history: MetricStatistics, uniforms: np.ndarray) -> np.ndarray:
        """Map ``n * uniforms_per_draw`` uniforms to ``n`` simulated values."""
        ...
