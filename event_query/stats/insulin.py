"""Insulin and carbohydrate statistics."""
from __future__ import annotations

from typing import Any, Mapping

import pandas as pd

from ..constants import AUTOMATED_DELIVERY, BASAL_DATA_KEY, MS_IN_DAY, MS_IN_HOUR
from ..crossfilter import FilterView
from ..models import EndpointWindow
from ..normalizer import to_number
from .registry import register_stat
from .stat_base import StatContext, StatKind, StatRoutine, clipped_duration, daily_average


def _column(frame: pd.DataFrame, name: str) -> pd.Series:
    if name not in frame:
        return pd.Series(0.0, index=frame.index)
    return pd.to_numeric(frame[name], errors="coerce").fillna(0.0)


def _basal_units(view: FilterView, endpoint: EndpointWindow, routine: StatRoutine) -> float:
    frame = routine.frame(view, BASAL_DATA_KEY)
    if frame.empty:
        return 0.0
    hours = clipped_duration(frame, endpoint) / MS_IN_HOUR
    return float((_column(frame, "rate") * hours).sum())


def _bolus_units(view: FilterView, routine: StatRoutine) -> float:
    frame = routine.frame(view, "bolus")
    if frame.empty:
        return 0.0
    return float((_column(frame, "normal") + _column(frame, "extended")).sum())


@register_stat
class TotalInsulinStat(StatRoutine):
    """Basal and bolus units delivered, per day for multi-day windows."""

    kind = StatKind.TOTAL_INSULIN

    def compute(self, view: FilterView, endpoint: EndpointWindow, context: StatContext) -> Mapping[str, Any]:
        return {
            "basal": daily_average(_basal_units(view, endpoint, self), endpoint),
            "bolus": daily_average(_bolus_units(view, self), endpoint),
        }


@register_stat
class AverageDailyDoseStat(StatRoutine):
    kind = StatKind.AVERAGE_DAILY_DOSE

    def compute(self, view: FilterView, endpoint: EndpointWindow, context: StatContext) -> Mapping[str, Any]:
        total = _basal_units(view, endpoint, self) + _bolus_units(view, self)
        return {"totalInsulin": daily_average(total, endpoint)}


@register_stat
class CarbsStat(StatRoutine):
    """Wizard carb entries plus logged food, per day for multi-day windows."""

    kind = StatKind.CARBS

    def compute(self, view: FilterView, endpoint: EndpointWindow, context: StatContext) -> Mapping[str, Any]:
        wizard = self.frame(view, "wizard")
        total = float(_column(wizard, "carbInput").sum()) if not wizard.empty else 0.0
        for record in view.by_type("food").records():
            nutrition = record.get("nutrition")
            carbohydrate = nutrition.get("carbohydrate") if isinstance(nutrition, Mapping) else None
            net = to_number(carbohydrate.get("net")) if isinstance(carbohydrate, Mapping) else None
            if net is not None:
                total += net
        return {"carbs": daily_average(total, endpoint)}


@register_stat
class TimeInAutoStat(StatRoutine):
    """Basal time in automated vs manual delivery, in ms."""

    kind = StatKind.TIME_IN_AUTO

    def compute(self, view: FilterView, endpoint: EndpointWindow, context: StatContext) -> Mapping[str, Any]:
        frame = self.frame(view, BASAL_DATA_KEY)
        if frame.empty:
            return {"automated": 0.0, "manual": 0.0}
        durations = clipped_duration(frame, endpoint)
        delivery = frame["deliveryType"] if "deliveryType" in frame else pd.Series("", index=frame.index)
        automated = float(durations[delivery == AUTOMATED_DELIVERY].sum())
        manual = float(durations[delivery != AUTOMATED_DELIVERY].sum())
        total = automated + manual
        if endpoint.days > 1 and total:
            automated, manual = automated / total * MS_IN_DAY, manual / total * MS_IN_DAY
        return {"automated": automated, "manual": manual}
