from __future__ import annotations

from datetime import date

import pytest

from sprint_forecast.forecasting.aggregation.contributors import (
    aggregate_by_contributor,
    contributor_statistics,
    team_metrics,
)
from sprint_forecast.forecasting.aggregation.team import team_series
from sprint_forecast.forecasting.domain.models import SprintWindow, Ticket


def _t(sprints: tuple[int, ...], who: str | None, sp: float = 1.0, finished: bool = True) -> Ticket:
    return Ticket(
        sprints=sprints,
        is_finished=finished,
        closed_at=date(2025, 1, 10) if finished else None,
        story_points=sp,
        assignee=who,
    )


TICKETS = [
    _t((1,), "alice", sp=3),
    _t((1,), "alice", sp=2),
    _t((3,), "alice", sp=5),
    _t((2,), "bob", sp=1),
    _t((2,), "alice", sp=8, finished=False),
    _t((1,), None, sp=1),
    _t((9,), "carol", sp=4),
    _t((1, 2), "dave", sp=2),
]


def test_sprint_window_validation() -> None:
    window = SprintWindow((1, 2, 5))
    assert window.position(5) == 2
    assert 3 not in window
    with pytest.raises(ValueError):
        window.position(3)
    with pytest.raises(ValueError):
        SprintWindow((3, 1))
    with pytest.raises(ValueError):
        SprintWindow((1, 1))
    with pytest.raises(ValueError):
        SprintWindow((0, 1))


def test_aggregate_by_contributor_dense_per_sprint() -> None:
    window = SprintWindow((1, 2, 3))
    records = aggregate_by_contributor(TICKETS, window)

    assert set(records) == {"alice", "bob", "dave"}
    assert records["alice"].throughput.tolist() == [2, 0, 1]
    assert records["alice"].story_points.tolist() == [5.0, 0.0, 5.0]
    assert records["bob"].throughput.tolist() == [0, 1, 0]
    # A ticket carried over counts in each in-window sprint it belonged to.
    assert records["dave"].throughput.tolist() == [1, 1, 0]
    assert records["dave"].story_points.tolist() == [2.0, 2.0, 0.0]


def test_contributor_statistics_score_active_sprints() -> None:
    window = SprintWindow((1, 2, 3))
    stats = contributor_statistics(aggregate_by_contributor(TICKETS, window), window)

    assert [c.name for c in stats] == ["alice", "dave", "bob"]
    alice = stats[0]
    assert alice.sprints_analyzed == 3
    assert alice.sprints_active == 2
    assert alice.throughput.values == (2.0, 0.0, 1.0)
    assert alice.throughput.total == 3.0
    assert alice.throughput.mean == pytest.approx(1.0)
    assert alice.throughput.std_dev == pytest.approx((2.0 / 3.0) ** 0.5)
    assert (alice.throughput.min, alice.throughput.max) == (0.0, 2.0)
    # Percentiles only see the two active sprints [1, 2].
    assert (alice.throughput.p15, alice.throughput.p50, alice.throughput.p85) == (1, 2, 2)
    assert alice.avg_points_per_ticket == 3.3
    assert not alice.is_reliable

    for c in stats:
        assert c.sprints_active <= c.sprints_analyzed


def test_team_metrics_sum_contributors() -> None:
    window = SprintWindow((1, 2, 3))
    stats = contributor_statistics(aggregate_by_contributor(TICKETS, window), window)
    metrics = team_metrics(stats, window)

    assert [s.throughput for s in metrics.sprint_totals] == [3, 2, 1]
    assert metrics.story_points.values == (7.0, 3.0, 5.0)
    assert metrics.throughput.mean == pytest.approx(2.0)
    assert metrics.throughput.trend_pct == -50
    assert metrics.team_size == 3
    assert metrics.active_contributors == 3


def test_team_series_skips_sprints_without_delivery() -> None:
    window = SprintWindow((1, 2, 3, 4))

    tickets = team_series(TICKETS, window)
    assert tickets.sprints == (1, 2, 3)
    assert tickets.values == (4.0, 2.0, 1.0)

    points = team_series(TICKETS, window, metric="story_points")
    assert points.values == (8.0, 3.0, 5.0)

    assigned = team_series(TICKETS, window, require_assignee=True)
    assert assigned.values == (3.0, 2.0, 1.0)

    with pytest.raises(ValueError):
        team_series(TICKETS, window, metric="hours")  # type: ignore[arg-type]
