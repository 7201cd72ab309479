"""Derive display time and unit fields for device events."""
from __future__ import annotations

import math
from typing import Any, Mapping, Optional

from .bloodglucose import convert_bg_value
from .constants import (
    BASAL_DATA_KEY,
    BG_DATA_TYPES,
    DEVICE_TIME_WARNING,
    MGDL_UNITS,
    MMOLL_UNITS,
    MS_IN_MIN,
)
from .models import BgPrefs, TimePrefs
from .timeutils import get_ms_per24, get_offset, to_epoch_ms

_DERIVED_FIELDS = ("normalTime", "displayOffset", "normalEnd", "msPer24", "warning")


def to_number(value: Any) -> Optional[float]:
    """Finite float for a numeric field, ``None`` when the device sent something else."""

    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def normalize(event: Mapping[str, Any], time_prefs: TimePrefs, bg_prefs: BgPrefs) -> dict[str, Any]:
    """Return a copy of ``event`` with ``normalTime`` and related fields set.

    ``event`` is left untouched. ``time`` and ``deviceTime`` must already be
    epoch milliseconds, as stored by the index.
    """

    datum = {key: value for key, value in event.items() if key not in _DERIVED_FIELDS}
    timezone_name = time_prefs.active_timezone
    device_time = datum.get("deviceTime")

    if timezone_name:
        datum["normalTime"] = datum["time"]
        datum["displayOffset"] = -get_offset(datum["time"], timezone_name)
    else:
        timezone_offset = to_number(datum.get("timezoneOffset"))
        conversion_offset = to_number(datum.get("conversionOffset"))
        local_time = None
        if timezone_offset is not None and conversion_offset is not None:
            local_time = to_epoch_ms(datum["time"] + timezone_offset * MS_IN_MIN + conversion_offset)
        if local_time is not None:
            datum["normalTime"] = local_time
        elif device_time is not None:
            datum["normalTime"] = device_time
        else:
            datum["normalTime"] = datum["time"]
        datum["displayOffset"] = 0

        # whole-second comparison; device clocks do not carry milliseconds
        if device_time is not None and datum["normalTime"] // 1000 != device_time // 1000:
            datum["warning"] = DEVICE_TIME_WARNING

    if datum.get("type") == BASAL_DATA_KEY:
        datum["normalEnd"] = datum["normalTime"] + int(to_number(datum.get("duration")) or 0)
        if "deliveryType" in datum:
            datum["subType"] = datum["deliveryType"]

    if datum.get("type") in BG_DATA_TYPES:
        datum.update(normalize_bg_units(datum, bg_prefs))
        datum["msPer24"] = get_ms_per24(datum["normalTime"], timezone_name)

    return datum


def normalize_bg_units(event: Mapping[str, Any], bg_prefs: BgPrefs) -> dict[str, Any]:
    """Return the ``value``/``units`` pair expressed in the preferred glucose units.

    Readings with a missing or non-numeric value, matching units or unrecognised
    units come back unchanged.
    """

    value = to_number(event.get("value"))
    units = event.get("units")
    if value is None or units == bg_prefs.bg_units or units not in (MGDL_UNITS, MMOLL_UNITS):
        return {key: event[key] for key in ("value", "units") if key in event}
    return {
        "value": convert_bg_value(value, units, bg_prefs.bg_units),
        "units": bg_prefs.bg_units,
    }
