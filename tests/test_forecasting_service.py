from __future__ import annotations

from datetime import date, timedelta

from sprint_forecast.common.seeding import make_random_source
from sprint_forecast.config import ForecastConfig, SimulationConfig
from sprint_forecast.forecasting.aggregation.window import (
    check_data_readiness,
    completed_sprints,
    current_sprint,
    finished_sprints,
    select_window,
)
from sprint_forecast.forecasting.domain.models import (
    ErrorKind,
    ForecastAnalysis,
    ForecastFailure,
    HorizonResult,
    SprintWindow,
    Ticket,
)
from sprint_forecast.forecasting.services.forecasting_service import ForecastingService


def _done(sprint: int, who: str | None, sp: float) -> Ticket:
    return Ticket(
        sprints=(sprint,),
        is_finished=True,
        closed_at=date(2025, 1, 6) + timedelta(days=14 * sprint),
        story_points=sp,
        assignee=who,
    )


def _history() -> list[Ticket]:
    tickets = [
        _done(1, "alice", 3), _done(1, "alice", 2), _done(1, "bob", 2),
        _done(2, "alice", 5), _done(2, "bob", 3), _done(2, "bob", 3),
        _done(3, "alice", 1), _done(3, "alice", 1), _done(3, "bob", 5),
        _done(4, "alice", 3), _done(4, "bob", 2), _done(4, "bob", 1),
    ]
    tickets.append(Ticket(sprints=(4, 5), is_finished=False, story_points=5, assignee="alice"))
    return tickets


def _service(**sim: object) -> ForecastingService:
    return ForecastingService(config=ForecastConfig(seed=7, simulation=SimulationConfig(iterations=2_000, **sim)))


def test_window_selection() -> None:
    tickets = _history()
    assert completed_sprints(tickets) == [1, 2, 3, 4]
    assert current_sprint(tickets) == 5

    window, target = select_window(tickets, sprints_to_analyze=3)
    assert window.sprints == (2, 3, 4)
    assert target == 5

    window, target = select_window(tickets, review_sprint=2)
    assert window.sprints == (1, 2)
    assert target == 3

    finished_only = [t for t in tickets if t.is_finished]
    assert current_sprint(finished_only) == 5
    assert current_sprint([]) is None


def test_data_readiness() -> None:
    ready = check_data_readiness(_history())
    assert ready.is_valid and ready.has_story_points and ready.message is None

    no_points = check_data_readiness([_done(1, "alice", 0)])
    assert no_points.is_valid and not no_points.has_story_points
    assert no_points.message is not None

    anonymous = check_data_readiness([_done(1, None, 2)])
    assert not anonymous.is_valid


def test_analyze_full_request() -> None:
    outcome = _service().analyze(_history())

    assert isinstance(outcome, ForecastAnalysis)
    assert outcome.window.sprints == (1, 2, 3, 4)
    assert outcome.next_sprint == 5
    assert {c.name for c in outcome.contributors} == {"alice", "bob"}
    assert outcome.has_enough_data
    assert outcome.team_metrics.throughput.values == (3.0, 3.0, 3.0, 3.0)
    assert outcome.simulation.iterations == 2_000

    low, mid, high = outcome.scenarios
    assert low.throughput <= mid.throughput <= high.throughput
    assert low.story_points <= mid.story_points <= high.story_points


def test_analyze_is_reproducible_with_seed() -> None:
    service = _service()
    first = service.analyze(_history())
    second = service.analyze(_history())
    assert isinstance(first, ForecastAnalysis) and isinstance(second, ForecastAnalysis)
    assert first.simulation == second.simulation

    explicit = service.analyze(_history(), source=make_random_source(99))
    assert isinstance(explicit, ForecastAnalysis)


def test_analyze_failures() -> None:
    anonymous = [_done(1, None, 1), _done(2, None, 2)]
    outcome = _service().analyze(anonymous)
    assert isinstance(outcome, ForecastFailure)
    assert outcome.kind is ErrorKind.MISSING_ASSIGNEE

    only_open = [Ticket(sprints=(3,), is_finished=False, assignee="alice")]
    outcome = _service().analyze(only_open)
    assert isinstance(outcome, ForecastFailure)
    assert outcome.kind is ErrorKind.NO_SPRINTS


def test_recalculate_with_exclusions() -> None:
    service = _service()
    window = SprintWindow((1, 2, 3, 4))

    without_bob = service.recalculate_with_exclusions(_history(), ["bob"], window)
    assert isinstance(without_bob, ForecastAnalysis)
    assert without_bob.simulation.contributors == ("alice",)
    assert without_bob.next_sprint == 5

    nobody = service.recalculate_with_exclusions(_history(), ["alice", "bob"], window)
    assert isinstance(nobody, ForecastAnalysis)
    assert nobody.simulation.is_empty


def test_how_many_over_team_series() -> None:
    service = _service()

    res = service.how_many(_history())
    assert isinstance(res, HorizonResult)
    assert res.projections[1].p50 == 3
    assert res.by_weeks()[12].p50 == 18

    points = service.how_many(_history(), metric="story_points")
    assert isinstance(points, HorizonResult)
    assert points.metadata.sprints_analyzed == 4

    too_short = service.how_many(_history(), window=SprintWindow((4,)))
    assert isinstance(too_short, ForecastFailure)
    assert too_short.kind is ErrorKind.INSUFFICIENT_DATA


def test_how_many_without_closure_dates() -> None:
    undated = [
        Ticket(sprints=(s,), is_finished=True, story_points=1, assignee="alice")
        for s in (1, 1, 2, 2, 2, 3)
    ]
    assert completed_sprints(undated) == []
    assert finished_sprints(undated) == [1, 2, 3]

    res = ForecastingService().how_many(undated)

    assert isinstance(res, HorizonResult)
    assert res.metadata.sprints_analyzed == 3
    assert res.metadata.base_mean == 2.0
