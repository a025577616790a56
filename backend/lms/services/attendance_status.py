"""Class status derivation.

``derive_status`` is a pure function of the scheduled slot, the current
time and whatever attendance/handover facts are known. It is evaluated on
every read; nothing it returns is persisted unless a user marks the class.
"""
from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from enum import Enum

from lms.services.time_slots import TimeSlot


class ClassStatus(str, Enum):
    pending = "pending"
    window_open = "window-open"
    missed = "missed"
    taken = "taken"
    handover = "handover"
    handed_over = "handed over"
    absent = "absent"


_STATUS_BY_KEY = {
    "pending": ClassStatus.pending,
    "window open": ClassStatus.window_open,
    "missed": ClassStatus.missed,
    "taken": ClassStatus.taken,
    "handover": ClassStatus.handover,
    "handed over": ClassStatus.handed_over,
    "absent": ClassStatus.absent,
}

MARKABLE_STATUSES = {ClassStatus.taken, ClassStatus.missed, ClassStatus.absent}


def normalize_status(raw: object) -> ClassStatus | None:
    """Map "Taken", "Handed Over", "window_open" and friends onto the enum."""
    if raw is None:
        return None
    if isinstance(raw, ClassStatus):
        return raw
    key = re.sub(r"[\s_\-]+", " ", str(raw).strip().lower())
    return _STATUS_BY_KEY.get(key)


def window_close(slot: TimeSlot, class_date: date, grace_minutes: int) -> datetime:
    return slot.ends_on(class_date) + timedelta(minutes=grace_minutes)


def derive_status(
    *,
    slot: TimeSlot,
    class_date: date,
    now: datetime,
    grace_minutes: int,
    record_status: object = None,
    entry_status: object = None,
    handover_status: object = None,
    is_substitute_class: bool = False,
) -> ClassStatus:
    record = normalize_status(record_status)
    if record == ClassStatus.taken:
        return ClassStatus.taken

    baseline = normalize_status(entry_status)
    if baseline == ClassStatus.taken:
        return ClassStatus.taken
    if normalize_status(handover_status) == ClassStatus.handed_over or baseline == ClassStatus.handed_over:
        return ClassStatus.handed_over
    if is_substitute_class or baseline == ClassStatus.handover:
        return ClassStatus.handover

    if record in (ClassStatus.missed, ClassStatus.absent):
        return record
    closes_at = window_close(slot, class_date, grace_minutes)
    if now > closes_at:
        return ClassStatus.missed
    if slot.starts_on(class_date) <= now:
        return ClassStatus.window_open

    if baseline in (ClassStatus.missed, ClassStatus.absent):
        return baseline
    return ClassStatus.pending
