"""Date-time helpers for naive-UTC storage columns."""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return the current time as a naive UTC timestamp, as stored in the database."""

    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Normalise an aware timestamp to naive UTC; naive values are assumed UTC already."""

    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
