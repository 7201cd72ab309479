"""Blood glucose unit conversion and range classification."""
from __future__ import annotations

from typing import Mapping

from .constants import MGDL_PER_MMOLL, MGDL_UNITS, MMOLL_UNITS


def convert_to_mmoll(value: float) -> float:
    return value / MGDL_PER_MMOLL


def convert_to_mgdl(value: float) -> float:
    return value * MGDL_PER_MMOLL


def convert_bg_value(value: float, from_units: str | None, to_units: str) -> float:
    """Convert ``value`` into ``to_units``.

    Values whose source units are unknown or already match are returned as-is.
    """

    if from_units == to_units or from_units not in (MGDL_UNITS, MMOLL_UNITS):
        return value
    if to_units == MGDL_UNITS:
        return convert_to_mgdl(value)
    return convert_to_mmoll(value)


def classify_bg_value(bg_bounds: Mapping[str, float], value: float) -> str:
    """Return the five-way range class (veryLow .. veryHigh) for a reading."""

    if value < bg_bounds["veryLowThreshold"]:
        return "veryLow"
    if value < bg_bounds["targetLowerBound"]:
        return "low"
    if value <= bg_bounds["targetUpperBound"]:
        return "target"
    if value <= bg_bounds["veryHighThreshold"]:
        return "high"
    return "veryHigh"
