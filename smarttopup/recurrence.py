"""
Recurrence descriptors and next-occurrence computation.

A schedule's recurrence is one of four frozen dataclasses. Each carries
exactly the fields its kind needs, so a weekly recurrence without a
day-of-week (or a one-time recurrence with a time-of-day) cannot be built.

All inputs and outputs are naive UTC datetimes; the wall-clock arithmetic
(today at 09:00, next Tuesday, the 31st) happens in the supplied time zone.
"""

from calendar import monthrange
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional, Union

from .clock import to_local, to_utc_naive
from .enums import ScheduleType
from .errors import InvalidInput


@dataclass(frozen=True)
class OneTime:
    at: datetime
    schedule_type = ScheduleType.ONE_TIME


@dataclass(frozen=True)
class Daily:
    time: time
    schedule_type = ScheduleType.DAILY


@dataclass(frozen=True)
class Weekly:
    day_of_week: int  # 0 = Monday ... 6 = Sunday, as date.weekday()
    time: time
    schedule_type = ScheduleType.WEEKLY

    def __post_init__(self):
        if not isinstance(self.day_of_week, int) or not 0 <= self.day_of_week <= 6:
            raise InvalidInput("day_of_week must be between 0 (Monday) and 6 (Sunday)")


@dataclass(frozen=True)
class Monthly:
    day_of_month: int
    time: time
    schedule_type = ScheduleType.MONTHLY

    def __post_init__(self):
        if not isinstance(self.day_of_month, int) or not 1 <= self.day_of_month <= 31:
            raise InvalidInput("day_of_month must be between 1 and 31")


Recurrence = Union[OneTime, Daily, Weekly, Monthly]


def _at(day: date, at_time: time, tz) -> datetime:
    return datetime.combine(day, at_time, tzinfo=tz)


def _clamped(year: int, month: int, day_of_month: int) -> date:
    return date(year, month, min(day_of_month, monthrange(year, month)[1]))


def next_occurrence(recurrence: Recurrence, now: datetime, tz) -> Optional[datetime]:
    """Return the first firing time strictly after ``now``, or None."""
    if isinstance(recurrence, OneTime):
        return recurrence.at if recurrence.at > now else None

    local_now = to_local(now, tz)
    today = local_now.date()

    if isinstance(recurrence, Daily):
        candidate = _at(today, recurrence.time, tz)
        if candidate <= local_now:
            candidate = _at(today + timedelta(days=1), recurrence.time, tz)

    elif isinstance(recurrence, Weekly):
        days_ahead = (recurrence.day_of_week - today.weekday()) % 7
        candidate = _at(today + timedelta(days=days_ahead), recurrence.time, tz)
        if candidate <= local_now:
            candidate = _at(today + timedelta(days=days_ahead + 7), recurrence.time, tz)

    elif isinstance(recurrence, Monthly):
        # Clamp within the candidate month only; the next month starts again
        # from the stored day, so a day-31 schedule fires Apr 30 then May 31.
        candidate = _at(_clamped(today.year, today.month, recurrence.day_of_month), recurrence.time, tz)
        if candidate <= local_now:
            year, month = (today.year + 1, 1) if today.month == 12 else (today.year, today.month + 1)
            candidate = _at(_clamped(year, month, recurrence.day_of_month), recurrence.time, tz)

    else:
        raise InvalidInput(f"Unsupported recurrence: {recurrence!r}")

    return to_utc_naive(candidate)


def parse_time(value) -> time:
    if isinstance(value, time):
        return value
    try:
        hours, minutes = str(value).split(":")[:2]
        return time(int(hours), int(minutes))
    except (TypeError, ValueError):
        raise InvalidInput("Time must be given as HH:MM") from None


def parse_timestamp(value, tz) -> datetime:
    """ISO timestamp to naive UTC; values without an offset are local time."""
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value))
        except ValueError:
            raise InvalidInput("scheduled_at must be an ISO 8601 timestamp") from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return to_utc_naive(parsed)


def recurrence_from_payload(schedule_type, payload: dict, tz) -> Recurrence:
    try:
        schedule_type = ScheduleType(schedule_type)
    except ValueError:
        raise InvalidInput("schedule_type must be one_time, daily, weekly or monthly") from None

    if schedule_type is ScheduleType.ONE_TIME:
        if not payload.get("scheduled_at"):
            raise InvalidInput("scheduled_at is required for one_time schedules")
        return OneTime(parse_timestamp(payload["scheduled_at"], tz))

    if not payload.get("recurring_time"):
        raise InvalidInput("recurring_time is required for recurring schedules")
    at_time = parse_time(payload["recurring_time"])

    if schedule_type is ScheduleType.DAILY:
        return Daily(at_time)
    if schedule_type is ScheduleType.WEEKLY:
        if payload.get("recurring_day_of_week") is None:
            raise InvalidInput("recurring_day_of_week is required for weekly schedules")
        return Weekly(_as_int(payload["recurring_day_of_week"], "recurring_day_of_week"), at_time)
    if payload.get("recurring_day_of_month") is None:
        raise InvalidInput("recurring_day_of_month is required for monthly schedules")
    return Monthly(_as_int(payload["recurring_day_of_month"], "recurring_day_of_month"), at_time)


def _as_int(value, field: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"{field} must be a whole number") from None
