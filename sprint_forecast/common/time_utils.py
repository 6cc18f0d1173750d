from __future__ import annotations

from datetime import date, datetime


def parse_iso8601(dt_str: str) -> datetime:
    # Exports use e.g. 2024-01-01T00:00:00Z
    if dt_str.endswith("Z"):
        dt_str = dt_str[:-1] + "+00:00"
    return datetime.fromisoformat(dt_str)


def parse_date(value: str | date | None) -> date | None:
    """Accept a date, an ISO date or an ISO timestamp; blank means no date."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = value.strip()
    if not text:
        return None
    if "T" in text or " " in text:
        return parse_iso8601(text).date()
    return date.fromisoformat(text)
