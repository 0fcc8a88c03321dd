from datetime import datetime, timezone as dt_timezone

from django.conf import settings
from django.utils.dateparse import parse_datetime


def timestamp_field() -> str:
    return settings.SYNC_ENGINE["TIMESTAMP_FIELD"]


def parse_timestamp(value):
    """
    Normalize a modification timestamp to an aware datetime
    Accepts datetimes, ISO-8601 strings and epoch seconds; anything else is None
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=dt_timezone.utc)
    elif isinstance(value, str):
        try:
            parsed = parse_datetime(value.strip())
        except ValueError:
            return None
        if parsed is None:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt_timezone.utc)
    return parsed
