"""Windowed query engine for diabetes device events."""

from .config import EngineConfig
from .crossfilter import Crossfilter, Dimension, FilterView
from .endpoints import plan_endpoints
from .engine import DataEngine
from .errors import EventQueryError, InvalidQueryError, MissingEndpointsError, UnknownDimensionError
from .models import (
    BgPrefs,
    BgSources,
    DuplicatePolicy,
    EndpointPlan,
    EndpointWindow,
    LatestPump,
    QueryParams,
    QueryResult,
    RangeResult,
    SortSpec,
    TimePrefs,
    TypeSelection,
)
from .normalizer import normalize
from .stats import StatContext, StatKind, StatRoutine, register_stat

__all__ = [
    "BgPrefs",
    "BgSources",
    "Crossfilter",
    "DataEngine",
    "Dimension",
    "DuplicatePolicy",
    "EndpointPlan",
    "EndpointWindow",
    "EngineConfig",
    "EventQueryError",
    "FilterView",
    "InvalidQueryError",
    "LatestPump",
    "MissingEndpointsError",
    "QueryParams",
    "QueryResult",
    "RangeResult",
    "SortSpec",
    "StatContext",
    "StatKind",
    "StatRoutine",
    "TimePrefs",
    "TypeSelection",
    "UnknownDimensionError",
    "normalize",
    "plan_endpoints",
    "register_stat",
]
