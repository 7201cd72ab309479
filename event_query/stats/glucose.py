"""Glucose statistics."""
from __future__ import annotations

import math
from typing import Any, Mapping

import numpy as np

from ..bloodglucose import classify_bg_value, convert_to_mgdl
from ..constants import BGM_DATA_KEY, CGM_DATA_KEY, MMOLL_UNITS, MS_IN_DAY
from ..crossfilter import FilterView
from ..models import EndpointWindow
from .registry import register_stat
from .stat_base import StatContext, StatKind, StatRoutine

_RANGE_KEYS = ("veryLow", "low", "target", "high", "veryHigh")


def _range_counts(values: np.ndarray, context: StatContext) -> dict[str, int]:
    counts = dict.fromkeys(_RANGE_KEYS, 0)
    for value in values:
        counts[classify_bg_value(context.bg_prefs.bg_bounds, float(value))] += 1
    return counts


@register_stat
class AverageGlucoseStat(StatRoutine):
    kind = StatKind.AVERAGE_GLUCOSE

    def compute(self, view: FilterView, endpoint: EndpointWindow, context: StatContext) -> Mapping[str, Any]:
        values = self.bg_values(view, context.bg_source, context)
        return {
            "averageGlucose": float(np.mean(values)) if len(values) else math.nan,
            "total": int(len(values)),
        }


@register_stat
class StandardDevStat(StatRoutine):
    """Sample standard deviation; needs at least two readings."""

    kind = StatKind.STANDARD_DEV

    def compute(self, view: FilterView, endpoint: EndpointWindow, context: StatContext) -> Mapping[str, Any]:
        values = self.bg_values(view, context.bg_source, context)
        return {
            "averageGlucose": float(np.mean(values)) if len(values) else math.nan,
            "standardDeviation": float(np.std(values, ddof=1)) if len(values) > 1 else math.nan,
            "total": int(len(values)),
        }


@register_stat
class CoefficientOfVariationStat(StatRoutine):
    kind = StatKind.COEFFICIENT_OF_VARIATION

    def compute(self, view: FilterView, endpoint: EndpointWindow, context: StatContext) -> Mapping[str, Any]:
        values = self.bg_values(view, context.bg_source, context)
        coefficient = math.nan
        if len(values) > 1:
            mean = float(np.mean(values))
            if mean:
                coefficient = float(np.std(values, ddof=1)) / mean * 100
        return {"coefficientOfVariation": coefficient, "total": int(len(values))}


@register_stat
class GlucoseManagementIndicatorStat(StatRoutine):
    """GMI (%) = 3.31 + 0.02392 x mean glucose in mg/dL, from CGM data only."""

    kind = StatKind.GLUCOSE_MANAGEMENT_INDICATOR

    def compute(self, view: FilterView, endpoint: EndpointWindow, context: StatContext) -> Mapping[str, Any]:
        if context.bg_source != CGM_DATA_KEY:
            return {"glucoseManagementIndicator": math.nan, "total": 0}
        values = self.bg_values(view, CGM_DATA_KEY, context)
        if not len(values):
            return {"glucoseManagementIndicator": math.nan, "total": 0}
        mean = float(np.mean(values))
        if context.bg_prefs.bg_units == MMOLL_UNITS:
            mean = convert_to_mgdl(mean)
        return {"glucoseManagementIndicator": 3.31 + 0.02392 * mean, "total": int(len(values))}


@register_stat
class ReadingsInRangeStat(StatRoutine):
    """Meter reading counts per glucose range."""

    kind = StatKind.READINGS_IN_RANGE

    def compute(self, view: FilterView, endpoint: EndpointWindow, context: StatContext) -> Mapping[str, Any]:
        values = self.bg_values(view, BGM_DATA_KEY, context)
        counts: dict[str, Any] = _range_counts(values, context)
        counts["total"] = int(len(values))
        return counts


@register_stat
class TimeInRangeStat(StatRoutine):
    """CGM time per glucose range in ms, as a daily average for multi-day windows."""

    kind = StatKind.TIME_IN_RANGE

    def compute(self, view: FilterView, endpoint: EndpointWindow, context: StatContext) -> Mapping[str, Any]:
        values = self.bg_values(view, CGM_DATA_KEY, context)
        durations: dict[str, float] = {
            key: float(count * context.cgm_reading_ms) for key, count in _range_counts(values, context).items()
        }
        total = sum(durations.values())
        if endpoint.days > 1 and total:
            durations = {key: value / total * MS_IN_DAY for key, value in durations.items()}
        return {**durations, "total": total}


@register_stat
class SensorUsageStat(StatRoutine):
    kind = StatKind.SENSOR_USAGE

    def compute(self, view: FilterView, endpoint: EndpointWindow, context: StatContext) -> Mapping[str, Any]:
        readings = view.by_type(CGM_DATA_KEY).count()
        return {
            "sensorUsage": float(readings * context.cgm_reading_ms),
            "total": float(endpoint.active_days * MS_IN_DAY),
        }
