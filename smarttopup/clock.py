from datetime import datetime, timezone


def utc_now() -> datetime:
    """Naive UTC, the form every timestamp column is stored in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_local(value: datetime, tz) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(tz)


def to_utc_naive(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def month_key(now: datetime, tz) -> str:
    return to_local(now, tz).strftime("%Y-%m")
