"""Reference-calendar time helpers"""

import re
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from ..config import REFERENCE_TIMEZONE

_FRACTION = re.compile(r"\.\d+")


def reference_zone() -> ZoneInfo:
    return ZoneInfo(REFERENCE_TIMEZONE)


def to_reference_time(moment: datetime) -> datetime:
    """
    Convert an instant into naive wall-clock time of the reference calendar.

    Naive inputs are assumed to already be in the reference calendar.
    """
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(reference_zone()).replace(tzinfo=None)


def to_utc(moment: datetime) -> datetime:
    """Attach the reference zone to a naive instant and convert to UTC"""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=reference_zone())
    return moment.astimezone(timezone.utc)


def parse_provider_timestamp(value: str) -> datetime:
    """Parse an RFC 3339 / ISO 8601 timestamp (a trailing Z means UTC)"""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    # Graph emits 7 fractional digits; datetime only takes microseconds
    value = _FRACTION.sub(lambda m: m.group(0)[:7], value)
    return to_reference_time(datetime.fromisoformat(value))


def now_in_reference() -> datetime:
    return datetime.now(reference_zone()).replace(tzinfo=None)


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, datetime.min.time())
