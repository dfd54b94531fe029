from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo


def facility_tz(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def to_utc_naive(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        raise ValueError("datetime must be timezone-aware")
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def utc_naive_to_local(dt: datetime, tz: ZoneInfo) -> datetime:
    return dt.replace(tzinfo=timezone.utc).astimezone(tz)


def utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def local_today(tz: ZoneInfo, *, now: datetime | None = None) -> date:
    """Calendar date at the facility for an aware or UTC-naive ``now``."""
    current = now or datetime.now(timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    return current.astimezone(tz).date()


def end_of_day_utc(day: date, tz: ZoneInfo) -> datetime:
    """23:59:59 facility time on ``day``, as UTC-naive for storage."""
    local = datetime.combine(day, time(23, 59, 59), tzinfo=tz)
    return to_utc_naive(local)


def start_of_day_utc(day: date, tz: ZoneInfo) -> datetime:
    """Midnight facility time on ``day``, as UTC-naive for storage."""
    return to_utc_naive(datetime.combine(day, time(0, 0), tzinfo=tz))
