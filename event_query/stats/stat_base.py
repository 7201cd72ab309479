"""Base class and shared helpers for summary statistics."""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

import numpy as np
import pandas as pd

from ..constants import CGM_READING_MINUTES, MS_IN_MIN
from ..crossfilter import FilterView
from ..models import BgPrefs, EndpointWindow
from ..normalizer import normalize_bg_units, to_number


class StatKind(str, Enum):
    """Statistics the dispatcher knows how to compute."""

    AVERAGE_GLUCOSE = "averageGlucose"
    AVERAGE_DAILY_DOSE = "averageDailyDose"
    CARBS = "carbs"
    COEFFICIENT_OF_VARIATION = "coefficientOfVariation"
    GLUCOSE_MANAGEMENT_INDICATOR = "glucoseManagementIndicator"
    READINGS_IN_RANGE = "readingsInRange"
    SENSOR_USAGE = "sensorUsage"
    STANDARD_DEV = "standardDev"
    TIME_IN_AUTO = "timeInAuto"
    TIME_IN_RANGE = "timeInRange"
    TOTAL_INSULIN = "totalInsulin"

    @classmethod
    def parse(cls, value: Any) -> Optional["StatKind"]:
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass(frozen=True)
class StatContext:
    """Query-wide settings a statistic may depend on."""

    bg_prefs: BgPrefs
    bg_source: Optional[str] = None
    cgm_reading_minutes: int = CGM_READING_MINUTES

    @property
    def cgm_reading_ms(self) -> int:
        return self.cgm_reading_minutes * MS_IN_MIN


class StatRoutine(ABC):
    """Abstract statistic computed over a filtered view of one window."""

    kind: StatKind

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if not isinstance(getattr(cls, "kind", None), StatKind):
            raise ValueError(f"Stat {cls.__name__} must declare a StatKind")

    @abstractmethod
    def compute(self, view: FilterView, endpoint: EndpointWindow, context: StatContext) -> Mapping[str, Any]:
        """Summarise ``view`` for ``endpoint`` without mutating either."""

    def frame(self, view: FilterView, type_name: str) -> pd.DataFrame:
        """Records of ``type_name`` visible in ``view`` as a dataframe."""

        return pd.DataFrame([dict(record) for record in view.by_type(type_name).records()])

    def bg_values(self, view: FilterView, type_name: Optional[str], context: StatContext) -> np.ndarray:
        """Glucose readings of ``type_name`` in the preferred units."""

        if not type_name:
            return np.empty(0, dtype=float)
        values = [
            to_number(normalize_bg_units(record, context.bg_prefs).get("value"))
            for record in view.by_type(type_name).records()
        ]
        return np.asarray([value for value in values if value is not None], dtype=float)

    def __repr__(self) -> str:  # pragma: no cover - convenience only
        return f"<{self.__class__.__name__} kind={self.kind.value!r}>"


def daily_average(value: float, endpoint: EndpointWindow) -> float:
    """Average ``value`` per active day for multi-day windows."""

    if endpoint.active_days > 1:
        return value / endpoint.active_days
    return value


def clipped_duration(frame: pd.DataFrame, endpoint: EndpointWindow) -> pd.Series:
    """Milliseconds of each interval record (``time`` + ``duration``) inside the window."""

    if frame.empty:
        return pd.Series(dtype=float)
    if "duration" not in frame:
        return pd.Series(0.0, index=frame.index)
    starts = frame["time"].astype("int64").clip(lower=endpoint.start)
    durations = pd.to_numeric(frame["duration"], errors="coerce").fillna(0)
    ends = (frame["time"] + durations).clip(upper=endpoint.end)
    return (ends - starts).clip(lower=0).astype(float)
