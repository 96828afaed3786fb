"""
Pure cron evaluation.

Contract:
    ``parse_cron``, ``matches_cron`` and ``next_fire_time`` are PURE -- no
    I/O, no clock reads.  The scheduler supplies the current time.

Cron format: ``minute hour day_of_month month day_of_week`` with
``*``, single values, ranges (1-5), lists (1,15) and steps (*/5, 1-10/2).
Day of week follows cron convention, 0 = Sunday.  All five fields must
match (day-of-month and day-of-week are ANDed).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta

# Longest gap searched by next_fire_time; covers a Feb-29 only schedule.
MAX_SEARCH_DAYS = 366 * 4 + 1


@dataclass(frozen=True)
class CronSpec:
    """Parsed cron expression; each field is the frozenset of allowed values."""

    minutes: frozenset[int] = field(default_factory=lambda: frozenset(range(60)))
    hours: frozenset[int] = field(default_factory=lambda: frozenset(range(24)))
    days_of_month: frozenset[int] = field(default_factory=lambda: frozenset(range(1, 32)))
    months: frozenset[int] = field(default_factory=lambda: frozenset(range(1, 13)))
    days_of_week: frozenset[int] = field(default_factory=lambda: frozenset(range(7)))

    def matches_day(self, dt: datetime) -> bool:
        return (
            dt.day in self.days_of_month
            and dt.month in self.months
            and _cron_weekday(dt) in self.days_of_week
        )


def _cron_weekday(dt: datetime) -> int:
    # Python weekday(): 0 = Monday; cron: 0 = Sunday.
    return (dt.weekday() + 1) % 7


def _parse_value(text: str, min_val: int, max_val: int) -> int:
    value = int(text)
    if value < min_val or value > max_val:
        raise ValueError(f"Value {value} outside range [{min_val}, {max_val}]")
    return value


def _parse_cron_field(field_str: str, min_val: int, max_val: int) -> frozenset[int]:
    """Parse one cron field into the set of values it allows.

    Raises:
        ValueError: syntactically invalid field or value out of range.
    """
    values: set[int] = set()

    for part in field_str.split(","):
        part = part.strip()
        step = 1
        if "/" in part:
            part, step_str = part.split("/", 1)
            step = int(step_str)
            if step <= 0:
                raise ValueError(f"Step must be positive: {step}")

        if part == "*":
            start, end = min_val, max_val
        elif "-" in part:
            s, e = part.split("-", 1)
            start = _parse_value(s, min_val, max_val)
            end = _parse_value(e, min_val, max_val)
            if start > end:
                raise ValueError(f"Range start > end: {start}-{end}")
        else:
            start = _parse_value(part, min_val, max_val)
            end = max_val if step != 1 else start

        values.update(range(start, end + 1, step))

    if not values:
        raise ValueError(f"Cron field '{field_str}' allows no values")
    return frozenset(values)


def parse_cron(expression: str) -> CronSpec:
    """Parse a 5-field cron expression.

    Raises:
        ValueError: If the expression is malformed.
    """
    parts = expression.strip().split()
    if len(parts) != 5:
        raise ValueError(
            f"Cron expression must have 5 fields, got {len(parts)}: '{expression}'"
        )

    return CronSpec(
        minutes=_parse_cron_field(parts[0], 0, 59),
        hours=_parse_cron_field(parts[1], 0, 23),
        days_of_month=_parse_cron_field(parts[2], 1, 31),
        months=_parse_cron_field(parts[3], 1, 12),
        days_of_week=_parse_cron_field(parts[4], 0, 6),
    )


def matches_cron(spec: CronSpec, dt: datetime) -> bool:
    """True when ``dt`` (to the minute) is a firing time of ``spec``."""
    return dt.minute in spec.minutes and dt.hour in spec.hours and spec.matches_day(dt)


def next_fire_time(spec: CronSpec, after: datetime) -> datetime:
    """First minute strictly after ``after`` that matches ``spec``.

    Days that cannot match are skipped whole, so the search is bounded by
    ``MAX_SEARCH_DAYS`` days rather than minutes.

    Raises:
        ValueError: If no match exists within the search window
            (e.g. ``0 0 31 2 *``).
    """
    candidate = after.replace(second=0, microsecond=0) + timedelta(minutes=1)
    limit = candidate + timedelta(days=MAX_SEARCH_DAYS)

    while candidate < limit:
        if not spec.matches_day(candidate):
            candidate = candidate.replace(hour=0, minute=0) + timedelta(days=1)
            continue
        if candidate.hour not in spec.hours:
            candidate = candidate.replace(minute=0) + timedelta(hours=1)
            continue
        if candidate.minute in spec.minutes:
            return candidate
        candidate += timedelta(minutes=1)

    raise ValueError(f"No cron match found within {MAX_SEARCH_DAYS} days after {after}")
