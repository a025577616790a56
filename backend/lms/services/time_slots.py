"""Parsing of free-text routine time-slots and weekday matching.

Routine entries are typed by hand on the HOD dashboard, so a slot may look
like ``"09:00-09:50"``, ``"9:00 AM – 9:50 AM"``, ``"0900"`` or just
``"14:00"``. Everything is reduced to minutes since midnight.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
MINUTES_PER_DAY = 24 * 60

SLOT_SEPARATOR = re.compile(r"\s*(?:–|—|-|\bto\b)\s*", re.IGNORECASE)
CLOCK_WITH_COLON = re.compile(r"^(\d{1,2})[:.](\d{2})\s*([ap]\.?m\.?)?$", re.IGNORECASE)
CLOCK_COMPACT = re.compile(r"^(\d{2})(\d{2})$")
CLOCK_HOUR_ONLY = re.compile(r"^(\d{1,2})\s*([ap]\.?m\.?)$", re.IGNORECASE)


def _apply_meridiem(hours: int, meridiem: str | None) -> int | None:
    if not meridiem:
        return hours
    if hours < 1 or hours > 12:
        return None
    is_pm = meridiem.lower().startswith("p")
    if is_pm and hours < 12:
        return hours + 12
    if not is_pm and hours == 12:
        return 0
    return hours


def parse_clock(value: str) -> int | None:
    """Return minutes since midnight, or None when the text is not a clock time."""
    text = value.strip()
    hours: int | None
    minutes = 0
    if match := CLOCK_WITH_COLON.match(text):
        hours = _apply_meridiem(int(match.group(1)), match.group(3))
        minutes = int(match.group(2))
    elif match := CLOCK_COMPACT.match(text):
        hours, minutes = int(match.group(1)), int(match.group(2))
    elif match := CLOCK_HOUR_ONLY.match(text):
        hours = _apply_meridiem(int(match.group(1)), match.group(2))
    else:
        return None
    if hours is None or hours > 23 or minutes > 59:
        return None
    return hours * 60 + minutes


def format_minutes(minutes: int) -> str:
    minutes %= MINUTES_PER_DAY
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


@dataclass(frozen=True)
class TimeSlot:
    start_minutes: int
    end_minutes: int
    fallback: bool = False

    @property
    def label(self) -> str:
        return f"{format_minutes(self.start_minutes)}-{format_minutes(self.end_minutes)}"

    def starts_on(self, class_date: date) -> datetime:
        return datetime.combine(class_date, time()) + timedelta(minutes=self.start_minutes)

    def ends_on(self, class_date: date) -> datetime:
        return datetime.combine(class_date, time()) + timedelta(minutes=self.end_minutes)

    def overlaps(self, other: "TimeSlot") -> bool:
        return self.start_minutes < other.end_minutes and other.start_minutes < self.end_minutes


def parse_time_slot(
    value: str | None,
    *,
    default_duration_minutes: int = 60,
    fallback_start: str = "00:00",
) -> TimeSlot:
    """Parse a slot, never raising.

    A start-only slot lasts ``default_duration_minutes``. Unparseable text
    yields a slot at ``fallback_start`` flagged with ``fallback=True``.
    """
    parts = SLOT_SEPARATOR.split((value or "").strip(), maxsplit=1)
    start = parse_clock(parts[0]) if parts and parts[0] else None
    if start is None:
        start = parse_clock(fallback_start) or 0
        return TimeSlot(start, start + default_duration_minutes, fallback=True)

    end = parse_clock(parts[1]) if len(parts) > 1 and parts[1] else None
    if end is None or end <= start:
        end = start + default_duration_minutes
    return TimeSlot(start, end)


def day_name(value: date) -> str:
    return DAY_NAMES[value.weekday()]


def normalize_day(value: str | None) -> str | None:
    candidate = (value or "").strip().lower()
    if not candidate:
        return None
    for name in DAY_NAMES:
        if candidate in (name.lower(), name[:3].lower()):
            return name
    return None


def matches_day(entry_day: str | None, target: date | str) -> bool:
    """Full name, three-letter abbreviation, any case."""
    wanted = target if isinstance(target, str) else day_name(target)
    candidate = (entry_day or "").strip()
    if not candidate:
        return False
    for form in (wanted, wanted[:3]):
        if candidate == form or candidate.lower() == form.lower():
            return True
    return False
