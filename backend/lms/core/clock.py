from __future__ import annotations

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from lms.core.config import get_settings


class InstituteClock:
    """Wall-clock time in the institute's timezone, as naive datetimes.

    Routine time-slots are local clock strings ("09:00-09:50"), so all
    comparisons happen on naive local datetimes.
    """

    def __init__(self, tz_name: str) -> None:
        self._tz = ZoneInfo(tz_name)

    def now(self) -> datetime:
        return datetime.now(timezone.utc).astimezone(self._tz).replace(tzinfo=None)

    def today(self) -> date:
        return self.now().date()


class FixedClock(InstituteClock):
    """Clock pinned to a settable moment."""

    def __init__(self, moment: datetime) -> None:
        self._moment = moment

    def now(self) -> datetime:
        return self._moment

    def set(self, moment: datetime) -> None:
        self._moment = moment


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def default_clock() -> InstituteClock:
    return InstituteClock(get_settings().institute_timezone)
