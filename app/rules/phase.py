"""Deadline phases.

A user's day is split by their ``HH:MM`` deadline into three phases:
planning before it, a verification window right after it, and closed once the
window ends. The deadline always refers to the calendar date of ``now`` as
seen in the user's timezone.
"""

import enum
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.config import settings


class Phase(str, enum.Enum):
    PLANNING = "PLANNING"
    VERIFYING = "VERIFYING"
    CLOSED = "CLOSED"


def parse_deadline(value: str) -> time:
    hours, minutes = (int(part) for part in value.strip().split(":", 1))
    return time(hour=hours, minute=minutes)


def user_zone(tz_name: Optional[str]) -> ZoneInfo:
    for name in (tz_name, settings.APP_TIMEZONE):
        if not name:
            continue
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            continue
    return ZoneInfo("UTC")


def as_utc(moment: datetime) -> datetime:
    # naive datetimes come from the database and are stored as UTC
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def to_db_time(moment: datetime) -> datetime:
    return as_utc(moment).replace(tzinfo=None)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def local_now(tz_name: Optional[str], now: datetime) -> datetime:
    return as_utc(now).astimezone(user_zone(tz_name))


def local_day(tz_name: Optional[str], moment: datetime) -> date:
    return local_now(tz_name, moment).date()


def deadline_bounds(deadline: str, now: datetime, window_minutes: Optional[int] = None) -> Tuple[datetime, datetime]:
    window = settings.VERIFICATION_WINDOW_MINUTES if window_minutes is None else window_minutes
    start = datetime.combine(now.date(), parse_deadline(deadline), tzinfo=now.tzinfo)
    return start, start + timedelta(minutes=window)


def evaluate_phase(deadline: str, now: datetime, window_minutes: Optional[int] = None) -> Phase:
    start, end = deadline_bounds(deadline, now, window_minutes)
    if now < start:
        return Phase.PLANNING
    if now <= end:
        return Phase.VERIFYING
    return Phase.CLOSED


def phase_for_user(deadline: Optional[str], tz_name: Optional[str], now: datetime) -> Optional[Phase]:
    if not deadline:
        return None
    return evaluate_phase(deadline, local_now(tz_name, now))
