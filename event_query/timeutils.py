"""Time helpers: epoch-millisecond parsing, zone offsets and day positions."""
from __future__ import annotations

import logging
import math
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator

import numpy as np
import pandas as pd
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .constants import MS_IN_DAY, MS_IN_HOUR, MS_IN_MIN

# 1970-01-01 was a Thursday; weekdays are numbered 0=Sunday .. 6=Saturday.
_EPOCH_WEEKDAY = 4

# instants pandas can represent; anything outside is treated as unparseable
_MIN_MS = pd.Timestamp.min.value // 1_000_000 + 1
_MAX_MS = pd.Timestamp.max.value // 1_000_000


def to_epoch_ms(value: Any) -> int | None:
    """Return ``value`` as integer epoch milliseconds, or ``None`` if unparseable.

    Numbers are taken to already be epoch milliseconds. Strings, ``datetime`` and
    pandas timestamps without an offset are read as UTC.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, np.integer, float, np.floating)):
        if isinstance(value, (float, np.floating)) and not math.isfinite(value):
            return None
        ms = int(value)
        return ms if _MIN_MS <= ms <= _MAX_MS else None
    if isinstance(value, str) and not value.strip():
        return None
    try:
        stamp = pd.Timestamp(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if stamp is pd.NaT:
        return None
    try:
        if stamp.tzinfo is None:
            stamp = stamp.tz_localize("UTC")
        return int(stamp.value // 1_000_000)
    except (OverflowError, ValueError):
        return None


def to_iso(ms: int) -> str:
    """Format epoch milliseconds as an ISO-8601 UTC string with millisecond precision."""

    stamp = datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
    return stamp.strftime("%Y-%m-%dT%H:%M:%S.") + f"{ms % 1000:03d}Z"


def resolve_timezone(name: str | None, default: str = "UTC") -> str:
    """Return ``name`` when it is a known IANA zone, otherwise ``default``."""

    if not name:
        return default
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logging.warning(f"Unknown timezone {name!r}; falling back to {default}")
        return default
    return name


def get_offset(ms: int, timezone_name: str) -> int:
    """Minutes west of UTC for ``timezone_name`` at the given instant."""

    local = datetime.fromtimestamp(ms / 1000, tz=ZoneInfo(timezone_name))
    offset = local.utcoffset()
    if offset is None:
        return 0
    return -int(offset.total_seconds() // 60)


def get_ms_per24(ms: int, timezone_name: str | None = None) -> int:
    """Milliseconds elapsed on the local wall clock since local midnight.

    The local calendar day comes from the tz database, so instants on DST
    transition days still map into ``[0, MS_IN_DAY)``.
    """

    tz = ZoneInfo(timezone_name) if timezone_name else timezone.utc
    local = datetime.fromtimestamp(ms / 1000, tz=tz)
    return (
        local.hour * MS_IN_HOUR
        + local.minute * MS_IN_MIN
        + local.second * 1000
        + local.microsecond // 1000
    ) % MS_IN_DAY


def weekdays_utc(ms_values: np.ndarray) -> np.ndarray:
    """Vectorised UTC weekday (0=Sunday) for an array of epoch milliseconds."""

    days = np.floor_divide(ms_values.astype(np.int64), MS_IN_DAY)
    return (days + _EPOCH_WEEKDAY) % 7


def weekday_utc(ms: int) -> int:
    return int((ms // MS_IN_DAY + _EPOCH_WEEKDAY) % 7)


@contextmanager
def timed(label: str) -> Iterator[None]:
    """Log the wall time spent inside the block at DEBUG level."""

    started = time.perf_counter()
    try:
        yield
    finally:
        elapsed = (time.perf_counter() - started) * 1000
        logging.debug(f"{label}: {elapsed:.2f}ms")
