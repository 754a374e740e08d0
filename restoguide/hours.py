"""
Working-hours helpers.

Working hours are stored as ``{"monday": {"open": "09:00", "close": "23:00"}, ...}``.
A close time earlier than the open time means the venue closes after midnight.
"""

from __future__ import annotations

import re
from typing import Optional

from restoguide.constants import WEEKDAYS

_TIME_RE = re.compile(r"^([01]?\d|2[0-4]):([0-5]\d)$")

LATE_CLOSE_MINUTES = 22 * 60
MORNING_CLOSE_MINUTES = 4 * 60


def parse_time(value) -> Optional[int]:
    """Minutes since midnight for an ``HH:MM`` string, or None."""
    if not isinstance(value, str):
        return None
    match = _TIME_RE.match(value.strip())
    if not match:
        return None
    minutes = int(match.group(1)) * 60 + int(match.group(2))
    if minutes > 24 * 60:
        return None
    return minutes


def _day_spans(working_hours: Optional[dict]):
    for day in WEEKDAYS:
        entry = (working_hours or {}).get(day)
        if not isinstance(entry, dict) or entry.get("closed"):
            continue
        open_at = parse_time(entry.get("open"))
        close_at = parse_time(entry.get("close"))
        if open_at is None or close_at is None:
            continue
        yield day, open_at, close_at


def is_round_the_clock(working_hours: Optional[dict]) -> bool:
    """True when every listed open day runs 00:00-24:00."""
    spans = list(_day_spans(working_hours))
    return bool(spans) and all(
        (open_at == 0 and close_at in (0, 24 * 60)) or open_at == close_at
        for _, open_at, close_at in spans
    )


def closes_late(working_hours: Optional[dict]) -> bool:
    """True when some day closes at 22:00 or later, or past midnight."""
    for _, open_at, close_at in _day_spans(working_hours):
        if close_at >= LATE_CLOSE_MINUTES or close_at < open_at or close_at == open_at:
            return True
    return False


def open_overnight(working_hours: Optional[dict]) -> bool:
    """True when some day runs past midnight until at least 04:00."""
    for _, open_at, close_at in _day_spans(working_hours):
        if close_at == open_at:
            return True
        if close_at < open_at and close_at >= MORNING_CLOSE_MINUTES:
            return True
    return False


def derive_hour_flags(working_hours: Optional[dict]) -> dict:
    round_the_clock = is_round_the_clock(working_hours)
    return {
        "is_24_hours": round_the_clock,
        "closes_late": round_the_clock or closes_late(working_hours),
        "open_overnight": round_the_clock or open_overnight(working_hours),
    }


def validate_working_hours(working_hours) -> list[str]:
    """Return a list of problems; empty when the structure is usable."""
    problems = []
    if not isinstance(working_hours, dict):
        return ["working_hours must be an object keyed by weekday"]
    for day, entry in working_hours.items():
        if day not in WEEKDAYS:
            problems.append(f"unknown day '{day}'")
            continue
        if not isinstance(entry, dict):
            problems.append(f"{day}: expected an object with open/close")
            continue
        if entry.get("closed"):
            continue
        for key in ("open", "close"):
            if parse_time(entry.get(key)) is None:
                problems.append(f"{day}.{key} must be HH:MM")
    return problems
