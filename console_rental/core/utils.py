import math
from datetime import datetime, time, timedelta, tzinfo
from functools import lru_cache
from uuid import uuid4 as _uuid4
from zoneinfo import ZoneInfo


def uuid4() -> str:
    return str(_uuid4())


@lru_cache(maxsize=16)
def get_zone(name: str) -> tzinfo:
    return ZoneInfo(name)


def to_local(value: datetime, zone: tzinfo) -> datetime:
    """Naive values are shop wall-clock time; aware ones are converted."""
    if value.tzinfo is None:
        return value.replace(tzinfo=zone)
    return value.astimezone(zone)


def local_midnight(value: datetime, zone: tzinfo) -> datetime:
    local = to_local(value, zone)
    return datetime.combine(local.date(), time.min, tzinfo=zone)


def ceil_minutes(delta: timedelta) -> int:
    seconds = delta.total_seconds()
    if seconds <= 0:
        return 0
    return math.ceil(seconds / 60)
