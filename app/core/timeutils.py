import re
from datetime import UTC, date, datetime, time

HHMM_PATTERN = re.compile(r"^([01][0-9]|2[0-3]):[0-5][0-9]$")


def utc_naive_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(dt: datetime) -> datetime:
    """Convert to naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    if dt.tzinfo is not None:
        return dt.astimezone(UTC).replace(tzinfo=None)
    return dt


def is_hhmm(value: str | None) -> bool:
    return bool(value) and HHMM_PATTERN.match(value) is not None


def parse_hhmm(value: str) -> time:
    hour, minute = value.split(":")
    return time(int(hour), int(minute))


def at_time(d: date, hhmm: str) -> datetime:
    return datetime.combine(d, parse_hhmm(hhmm))


def day_of_week(d: date) -> int:
    """Day index used by availability rules: 0 = Sunday ... 6 = Saturday."""
    return (d.weekday() + 1) % 7
