"""Shared constants for device event queries."""
from __future__ import annotations

from typing import Final

MGDL_UNITS: Final[str] = "mg/dL"
MMOLL_UNITS: Final[str] = "mmol/L"
MGDL_PER_MMOLL: Final[float] = 18.01559

MS_IN_MIN: Final[int] = 60_000
MS_IN_HOUR: Final[int] = 60 * MS_IN_MIN
MS_IN_DAY: Final[int] = 24 * MS_IN_HOUR

CGM_DATA_KEY: Final[str] = "cbg"
BGM_DATA_KEY: Final[str] = "smbg"
BG_DATA_TYPES: Final[frozenset[str]] = frozenset({CGM_DATA_KEY, BGM_DATA_KEY})
BASAL_DATA_KEY: Final[str] = "basal"
UPLOAD_DATA_KEY: Final[str] = "upload"

PUMP_DEVICE_TAG: Final[str] = "insulin-pump"
AUTOMATED_DELIVERY: Final[str] = "automated"

CGM_READING_MINUTES: Final[int] = 5
ALL_WEEKDAYS: Final[tuple[int, ...]] = (0, 1, 2, 3, 4, 5, 6)

DEVICE_TIME_WARNING: Final[str] = "Combining `time` and `timezoneOffset` does not yield `deviceTime`."

DEFAULT_BG_BOUNDS: Final[dict[str, dict[str, float]]] = {
    MGDL_UNITS: {
        "veryLowThreshold": 54,
        "targetLowerBound": 70,
        "targetUpperBound": 180,
        "veryHighThreshold": 250,
        "clampThreshold": 600,
    },
    MMOLL_UNITS: {
        "veryLowThreshold": 3.0,
        "targetLowerBound": 3.9,
        "targetUpperBound": 10.0,
        "veryHighThreshold": 13.9,
        "clampThreshold": 33.3,
    },
}
