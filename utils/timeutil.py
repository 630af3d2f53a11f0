"""
Conversions between stored naive-UTC timestamps and business-local
wall-clock minutes.

Opening hours and busy windows are expressed as minutes since local midnight
of a calendar day in the business timezone, so DST changes never shift a
"09:30" opening by an hour.
"""
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

MINUTES_PER_DAY = 24 * 60


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso(value: str, tz: ZoneInfo) -> datetime:
    """
    Parse an ISO-8601 timestamp into naive UTC.
    Values without an offset are read as business-local time.
    """
    value = value.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=tz)
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_iso(dt: datetime) -> str:
    return dt.replace(tzinfo=timezone.utc).isoformat()


def weekday_index(day: date) -> int:
    # 0=Sun .. 6=Sat
    return (day.weekday() + 1) % 7


def local_midnight(day: date, tz: ZoneInfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)


def minute_to_utc(day: date, minute: int, tz: ZoneInfo) -> datetime:
    local = local_midnight(day, tz) + timedelta(minutes=minute)
    return local.astimezone(timezone.utc).replace(tzinfo=None)


def utc_to_minute(dt: datetime, day: date, tz: ZoneInfo) -> int:
    """Wall-clock minutes between local midnight of `day` and `dt` (may fall outside 0..1440)."""
    local = dt.replace(tzinfo=timezone.utc).astimezone(tz)
    delta = local - local_midnight(day, tz)
    return int(delta.total_seconds() // 60)


def local_date(dt: datetime, tz: ZoneInfo) -> date:
    return dt.replace(tzinfo=timezone.utc).astimezone(tz).date()


def local_dates(start: datetime, end: datetime, tz: ZoneInfo) -> list:
    """Every business-local calendar date touched by the half-open range [start, end)."""
    if end <= start:
        return []
    first = local_date(start, tz)
    last = local_date(end - timedelta(microseconds=1), tz)
    days = []
    current = first
    while current <= last:
        days.append(current)
        current += timedelta(days=1)
    return days
