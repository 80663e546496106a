"""
UTC day helpers
All ledger dates are naive UTC datetimes; day comparisons use start-of-day values only.
"""

from datetime import datetime, date, timedelta, timezone


def utc_start_of_day(value=None):
    """Normalize a date/datetime/ISO string to naive UTC 00:00:00 of its day.

    ``None`` means the current UTC day. Aware datetimes are converted to UTC
    first, naive ones are assumed to already be UTC.
    """
    if value is None:
        value = datetime.utcnow()

    if isinstance(value, str):
        value = parse_day(value)

    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return datetime(value.year, value.month, value.day)

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)

    raise TypeError(f'Cannot normalize {value!r} to a UTC day')


def parse_day(text):
    """Parse 'YYYY-MM-DD' or an ISO-8601 timestamp ('Z' suffix allowed)"""
    text = text.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise ValueError(f'Invalid date: {text!r} (expected YYYY-MM-DD or ISO timestamp)')
    return parsed


def is_utc_midnight(value):
    return (
        value.hour == 0 and value.minute == 0 and
        value.second == 0 and value.microsecond == 0
    )


def day_range(day):
    """Return the half-open [start, end) range covering a UTC day"""
    start = utc_start_of_day(day)
    return start, start + timedelta(days=1)


def days_ago(days, now=None):
    return (now or datetime.utcnow()) - timedelta(days=days)


def isoformat_utc(value):
    """Render a naive UTC datetime with an explicit Z suffix"""
    if value is None:
        return None
    return value.isoformat() + 'Z'
