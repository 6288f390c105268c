from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Mongo hands datetimes back naive; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def for_query(value: datetime) -> datetime:
    """Naive UTC value for filters (matches how the driver stores datetimes)."""
    return as_utc(value).astimezone(timezone.utc).replace(tzinfo=None)
