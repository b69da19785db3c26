from datetime import datetime, timezone as dt_timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from nutriscope.reminders.config import settings
from nutriscope.reminders.errors import ConfigError


def get_zoneinfo(tz_name: Optional[str] = None) -> tzinfo:
    """Resolve an IANA zone name, falling back to settings.DEFAULT_TIMEZONE.

    Raises ConfigError for names the zone database does not know.
    """
    name = (tz_name or settings.DEFAULT_TIMEZONE or "UTC").strip()
    if name.upper() in ("UTC", "Z", "ETC/UTC"):
        return dt_timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigError(f"Unknown timezone: {name!r}", field="timezone") from exc


def now_utc() -> datetime:
    return datetime.now(dt_timezone.utc)


def to_utc_aware(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize any datetime to UTC-aware (tzinfo=UTC).
    - Aware datetimes are converted to UTC
    - Naive datetimes are assumed UTC and tz attached
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=dt_timezone.utc)
    return dt.astimezone(dt_timezone.utc)


def to_utc_naive(dt: Optional[datetime]) -> Optional[datetime]:
    """UTC wall time with tzinfo stripped, for backends without timestamptz."""
    if dt is None:
        return None
    return to_utc_aware(dt).replace(tzinfo=None)
