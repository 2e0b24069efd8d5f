from datetime import date, datetime, timezone


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Make a naive datetime timezone-aware (UTC). Already-aware datetimes pass through.

    MongoDB stores datetimes without tzinfo (naive). Wrap values read from a
    document with ensure_utc() before comparing them with utcnow().
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def parse_utc(value: str | datetime) -> datetime:
    """Parse a date string or datetime into a tz-aware UTC datetime.

    Handles ISO 8601 strings (with or without Z/offset) and bare datetimes.
    """
    if isinstance(value, datetime):
        return ensure_utc(value).astimezone(timezone.utc)
    return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00"))).astimezone(timezone.utc)


def to_date_str(value: str | datetime) -> str:
    """UTC calendar day (YYYY-MM-DD) of a timestamp, the dataset cache key."""
    return parse_utc(value).strftime("%Y-%m-%d")


def validate_date_str(value: str) -> str:
    """Return value unchanged if it is a YYYY-MM-DD day, else raise ValueError."""
    date.fromisoformat(value)
    if len(value) != 10:
        raise ValueError(f"Expected YYYY-MM-DD, got {value!r}")
    return value


def slugify(value: str) -> str:
    """Country slug used by the query API: lower-case, whitespace runs to '-'."""
    return "-".join(str(value or "").lower().split())
