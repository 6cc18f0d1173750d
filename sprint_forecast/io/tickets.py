from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping

from sprint_forecast.common.time_utils import parse_date
from sprint_forecast.forecasting.domain.models import Ticket


logger = logging.getLogger(__name__)


class TicketLoadError(ValueError):
    """Raised when a ticket file or record cannot be understood."""


def ticket_from_dict(row: Mapping[str, Any]) -> Ticket:
    # Expected record format (example):
    # {"key": "PRJ-12", "sprints": [14, 15], "is_finished": true,
    #  "closed_at": "2025-03-07", "story_points": 3, "assignee": "alice"}
    sprints_raw = row.get("sprints")
    if sprints_raw is None:
        single = row.get("sprint")
        sprints_raw = [] if single is None else [single]
    try:
        sprints = tuple(int(s) for s in sprints_raw)
        story_points = float(row.get("story_points") or 0.0)
        closed_at = parse_date(row.get("closed_at"))
    except (TypeError, ValueError) as exc:
        raise TicketLoadError(f"Malformed ticket {row.get('key', '?')}: {exc}") from exc

    if any(s <= 0 for s in sprints):
        raise TicketLoadError(f"Ticket {row.get('key', '?')} has a non-positive sprint number")
    if story_points < 0:
        raise TicketLoadError(f"Ticket {row.get('key', '?')} has negative story points")

    assignee = row.get("assignee")
    return Ticket(
        sprints=sprints,
        is_finished=bool(row.get("is_finished", False)),
        closed_at=closed_at,
        story_points=story_points,
        assignee=str(assignee).strip() if assignee else None,
        key=str(row.get("key") or ""),
    )


def tickets_from_records(rows: Iterable[Mapping[str, Any]]) -> list[Ticket]:
    return [ticket_from_dict(r) for r in rows]


def load_tickets(path: Path) -> list[Ticket]:
    """Read a JSON list of ticket records."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise TicketLoadError(f"Cannot read tickets from {path}: {exc}") from exc

    if isinstance(data, dict):
        data = data.get("tickets", [])
    if not isinstance(data, list) or not all(isinstance(r, dict) for r in data):
        raise TicketLoadError(f"{path} must hold a list of ticket objects")

    tickets = tickets_from_records(data)
    logger.info("Loaded %d tickets from %s", len(tickets), path)
    return tickets
