# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Timezone utilities for resolving feed datetimes to UTC instants
"""
import logging
from datetime import date, datetime, time, tzinfo
from typing import Optional, Union

import pytz
from dateutil import tz as dateutil_tz

logger = logging.getLogger(__name__)

DB_TIMESTAMP_FORMAT = '%Y-%m-%dT%H:%M:%S.%fZ'


def utc_now() -> datetime:
    """Current time as an aware UTC datetime"""
    return datetime.now(pytz.UTC)


def get_local_timezone() -> tzinfo:
    """Timezone of the processing host"""
    return dateutil_tz.tzlocal()


def to_db_timestamp(dt: datetime) -> str:
    """Fixed-width UTC text, so stored values sort lexicographically"""
    if dt.tzinfo is None:
        dt = pytz.UTC.localize(dt)
    return dt.astimezone(pytz.UTC).strftime(DB_TIMESTAMP_FORMAT)


def from_db_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored timestamp back into an aware UTC datetime"""
    if not value:
        return None

    dt = datetime.fromisoformat(value.replace('Z', '+00:00'))
    if dt.tzinfo is None:
        return pytz.UTC.localize(dt)
    return dt.astimezone(pytz.UTC)


def localize_wall_clock(naive_dt: datetime, zone: tzinfo) -> Optional[datetime]:
    """
    Attach a zone to a wall-clock time

    Returns None when the wall clock is ambiguous (falls twice) or does not
    exist (skipped) in that zone because of a daylight-saving transition.
    """
    if hasattr(zone, 'localize'):
        try:
            return zone.localize(naive_dt, is_dst=None)
        except pytz.exceptions.InvalidTimeError:
            return None

    if not dateutil_tz.datetime_exists(naive_dt, zone):
        return None
    if dateutil_tz.datetime_ambiguous(naive_dt, zone):
        return None
    return naive_dt.replace(tzinfo=zone)


def _known_zone(tzid: str) -> Optional[tzinfo]:
    try:
        return pytz.timezone(tzid)
    except pytz.exceptions.UnknownTimeZoneError:
        return None


def resolve_datetime(
    value: Union[date, datetime],
    tzid: Optional[str] = None,
    local_tz: Optional[tzinfo] = None
) -> Optional[datetime]:
    """
    Resolve a parsed feed value to an aware UTC datetime

    Args:
        value: date (all-day) or datetime, naive or aware
        tzid: TZID parameter attached to the value, if any
        local_tz: Host timezone used for floating and all-day values

    Returns:
        UTC datetime, or None when the wall clock cannot be resolved
    """
    local_zone = local_tz or get_local_timezone()

    # All-day: local midnight of that date
    if not isinstance(value, datetime):
        resolved = localize_wall_clock(datetime.combine(value, time.min), local_zone)
        return resolved.astimezone(pytz.UTC) if resolved else None

    if tzid:
        zone = _known_zone(tzid)
        if zone is not None:
            resolved = localize_wall_clock(value.replace(tzinfo=None), zone)
            if resolved is None:
                logger.warning(f"⚠️ {value.replace(tzinfo=None).isoformat()} is ambiguous or skipped in {tzid}")
            return resolved.astimezone(pytz.UTC) if resolved else None

        if value.tzinfo is not None:
            # The feed carried its own VTIMEZONE definition
            return value.astimezone(pytz.UTC)

        logger.warning(f"⚠️ Unknown timezone '{tzid}', interpreting as local time")

    elif value.tzinfo is not None:
        return value.astimezone(pytz.UTC)

    # Floating time
    resolved = localize_wall_clock(value.replace(tzinfo=None), local_zone)
    if resolved is None:
        logger.warning(f"⚠️ Local time {value.isoformat()} is ambiguous or skipped")
        return None
    return resolved.astimezone(pytz.UTC)
