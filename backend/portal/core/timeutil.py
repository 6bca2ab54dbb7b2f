# portal/core/timeutil.py
"""Date-time arithmetic for statistics windows."""
import datetime as dt
from zoneinfo import ZoneInfo


def add_days(value: dt.datetime, days: float) -> dt.datetime:
    return value + dt.timedelta(days=days)


def day_start(value: dt.datetime, tz_name: str | None = None) -> dt.datetime:
    """
    Get local midnight (00:00) of the day containing ``value``.

    Args:
        value: Timezone-aware datetime (naive values are treated as UTC)
        tz_name: IANA zone defining "local"; None uses the host zone

    Returns:
        Aware datetime of that midnight, expressed in UTC
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    local = value.astimezone(ZoneInfo(tz_name)) if tz_name else value.astimezone()
    midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight.astimezone(dt.timezone.utc)
