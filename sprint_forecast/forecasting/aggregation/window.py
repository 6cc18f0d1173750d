from __future__ import annotations

import logging
from collections.abc import Sequence

from sprint_forecast.forecasting.domain.models import DataReadiness, SprintWindow, Ticket


logger = logging.getLogger(__name__)

DEFAULT_SPRINTS_TO_ANALYZE = 6


def check_data_readiness(tickets: Sequence[Ticket]) -> DataReadiness:
    """Whether the ticket set carries enough fields for a contributor forecast."""
    if not tickets:
        return DataReadiness(has_assignee=False, has_story_points=False, is_valid=False, message="No tickets.")

    has_assignee = any(t.has_assignee for t in tickets)
    has_story_points = any(t.story_points > 0 for t in tickets)
    if not has_assignee:
        message: str | None = "No ticket carries an assignee; contributor forecasts need one."
    elif not has_story_points:
        message = "No story points found; the forecast relies on throughput only."
    else:
        message = None
    return DataReadiness(
        has_assignee=has_assignee,
        has_story_points=has_story_points,
        is_valid=has_assignee,
        message=message,
    )


def completed_sprints(tickets: Sequence[Ticket]) -> list[int]:
    """Sprints with at least one ticket closed in them, ascending."""
    return sorted(
        {
            t.closure_sprint
            for t in tickets
            if t.is_finished and t.closed_at is not None and t.closure_sprint is not None
        }
    )


def finished_sprints(tickets: Sequence[Ticket]) -> list[int]:
    """Sprints any finished ticket belonged to, ascending; closure dates are not required."""
    return sorted({s for t in tickets if t.is_finished for s in t.sprints})


def current_sprint(tickets: Sequence[Ticket]) -> int | None:
    """Highest sprint holding an open ticket, else the sprint after the last closure."""
    open_sprints = [t.closure_sprint for t in tickets if not t.is_finished and t.closure_sprint is not None]
    if open_sprints:
        return max(open_sprints)
    done_sprints = [t.closure_sprint for t in tickets if t.is_finished and t.closure_sprint is not None]
    if done_sprints:
        return max(done_sprints) + 1
    return None


def select_window(
    tickets: Sequence[Ticket],
    sprints_to_analyze: int = DEFAULT_SPRINTS_TO_ANALYZE,
    review_sprint: int | None = None,
) -> tuple[SprintWindow, int | None]:
    """Last completed sprints strictly before the sprint being forecast.

    Returns the window and the forecast target. An empty window means there
    is nothing to analyze.
    """
    if sprints_to_analyze < 1:
        raise ValueError("sprints_to_analyze must be at least 1")

    target = review_sprint + 1 if review_sprint is not None else current_sprint(tickets)
    done = completed_sprints(tickets)
    if target is not None:
        done = [s for s in done if s < target]
    window = SprintWindow(tuple(done[-sprints_to_analyze:]))
    logger.info("Forecast target sprint %s, analyzing sprints %s", target, window.sprints)
    return window, target
