from __future__ import annotations

from collections.abc import Iterable

from sprint_forecast.forecasting.aggregation.contributors import in_window_positions
from sprint_forecast.forecasting.domain.models import Metric, SprintWindow, TeamSeries, Ticket


def team_series(
    tickets: Iterable[Ticket],
    window: SprintWindow,
    metric: Metric = "tickets",
    require_assignee: bool = False,
) -> TeamSeries:
    """One team-level value per sprint, ascending, for the horizon model.

    Sprints of the window in which nothing was finished are left out rather
    than reported as zero.
    """
    if metric not in ("tickets", "story_points"):
        raise ValueError(f"Unknown metric: {metric!r}")

    totals: dict[int, float] = {}
    for t in tickets:
        if not t.is_finished or (require_assignee and not t.has_assignee):
            continue
        amount = 1.0 if metric == "tickets" else float(t.story_points or 0.0)
        for pos in in_window_positions(t, window):
            sprint = window.sprints[pos]
            totals[sprint] = totals.get(sprint, 0.0) + amount

    sprints = tuple(sorted(totals))
    return TeamSeries(sprints=sprints, values=tuple(totals[s] for s in sprints), metric=metric)
