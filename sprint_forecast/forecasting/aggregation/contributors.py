from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from typing import Final, Mapping, Sequence

import numpy as np

from sprint_forecast.forecasting.domain.models import (
    ContributorSprintRecord,
    ContributorStatistics,
    MetricStatistics,
    SprintTotals,
    SprintWindow,
    TeamMetrics,
    TeamMetricSummary,
    Ticket,
)
from sprint_forecast.forecasting.stats.primitives import (
    mean,
    percentile,
    round_half_up,
    standard_deviation,
)


logger = logging.getLogger(__name__)

MIN_SPRINTS_FOR_STATS: Final[int] = 3


def in_window_positions(ticket: Ticket, window: SprintWindow) -> Iterator[int]:
    """Window positions of every sprint the ticket was assigned to."""
    seen: set[int] = set()
    for sprint in ticket.sprints:
        if sprint in window and sprint not in seen:
            seen.add(sprint)
            yield window.position(sprint)


def aggregate_by_contributor(
    tickets: Iterable[Ticket],
    window: SprintWindow,
) -> dict[str, ContributorSprintRecord]:
    """Per-contributor, per-sprint delivery over the window.

    Only finished tickets with an assignee count. A ticket counts once in
    each in-window sprint of its own membership.
    """
    n = len(window)
    throughput: dict[str, np.ndarray] = {}
    story_points: dict[str, np.ndarray] = {}

    for t in tickets:
        if not t.is_finished or not t.has_assignee:
            continue
        positions = list(in_window_positions(t, window))
        if not positions:
            continue
        name = t.assignee.strip()  # type: ignore[union-attr]
        if name not in throughput:
            throughput[name] = np.zeros(n, dtype=int)
            story_points[name] = np.zeros(n, dtype=float)
        for pos in positions:
            throughput[name][pos] += 1
            story_points[name][pos] += float(t.story_points or 0.0)

    logger.debug("Aggregated %d contributors over sprints %s", len(throughput), window.sprints)
    return {
        name: ContributorSprintRecord(name=name, throughput=throughput[name], story_points=story_points[name])
        for name in throughput
    }


def _metric_statistics(values: np.ndarray) -> MetricStatistics:
    series = [float(v) for v in values]
    active = [v for v in series if v > 0]
    if active:
        p15, p50, p85 = (round_half_up(percentile(active, p)) for p in (15, 50, 85))
    else:
        p15 = p50 = p85 = 0
    return MetricStatistics(
        total=float(sum(series)),
        values=tuple(series),
        mean=mean(series),
        std_dev=standard_deviation(series),
        min=min(series) if series else 0.0,
        max=max(series) if series else 0.0,
        p15=p15,
        p50=p50,
        p85=p85,
    )


def contributor_statistics(
    records: Mapping[str, ContributorSprintRecord],
    window: SprintWindow,
) -> list[ContributorStatistics]:
    """Read-only statistics per contributor, busiest contributor first.

    Moments and extremes describe the whole zero-filled window; the
    P15/P50/P85 triplet only looks at sprints where something was delivered.
    """
    out: list[ContributorStatistics] = []
    for name, rec in records.items():
        tp = _metric_statistics(rec.throughput)
        sp = _metric_statistics(rec.story_points)
        avg_points = round_half_up(sp.total / tp.total * 10) / 10 if tp.total > 0 else 0.0
        out.append(
            ContributorStatistics(
                name=name,
                sprints_analyzed=len(window),
                sprints_active=rec.sprints_active,
                throughput=tp,
                story_points=sp,
                avg_points_per_ticket=avg_points,
                is_reliable=rec.sprints_active >= MIN_SPRINTS_FOR_STATS,
            )
        )
    out.sort(key=lambda c: c.throughput.total, reverse=True)
    return out


def _last_two_change_pct(values: Sequence[float]) -> int:
    if len(values) < 2 or values[-2] == 0:
        return 0
    return round_half_up((values[-1] - values[-2]) / values[-2] * 100)


def team_metrics(stats: Sequence[ContributorStatistics], window: SprintWindow) -> TeamMetrics:
    """Team totals per window sprint, zero-filled, summed over contributors."""
    n = len(window)
    tp = np.zeros(n, dtype=float)
    sp = np.zeros(n, dtype=float)
    for c in stats:
        tp += np.asarray(c.throughput.values, dtype=float)
        sp += np.asarray(c.story_points.values, dtype=float)

    totals = tuple(
        SprintTotals(sprint=s, throughput=int(tp[i]), story_points=float(sp[i]))
        for i, s in enumerate(window.sprints)
    )

    def summary(values: np.ndarray) -> TeamMetricSummary:
        vals = tuple(float(v) for v in values)
        return TeamMetricSummary(
            values=vals,
            mean=mean(vals),
            std_dev=standard_deviation(vals),
            trend_pct=_last_two_change_pct(vals),
        )

    return TeamMetrics(
        sprints=window.sprints,
        sprint_totals=totals,
        throughput=summary(tp),
        story_points=summary(sp),
        team_size=len(stats),
        active_contributors=sum(1 for c in stats if c.sprints_active > 0),
    )
