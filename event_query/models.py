"""Core data models for windowed event queries."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Mapping, Optional, Sequence

from .constants import ALL_WEEKDAYS, DEFAULT_BG_BOUNDS, MGDL_UNITS, MMOLL_UNITS
from .errors import InvalidQueryError
from .timeutils import resolve_timezone

RANGE_KEYS: tuple[str, ...] = ("current", "next", "prev")


class DuplicatePolicy(str, Enum):
    """Which record survives when one ingest batch repeats an id."""

    FIRST = "first"
    LAST = "last"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


def _split_csv(value: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in value.split(",") if part.strip())


@dataclass(frozen=True)
class TimePrefs:
    """Display timezone preferences."""

    timezone_aware: bool = False
    timezone_name: Optional[str] = None

    @classmethod
    def resolve(cls, prefs: "TimePrefs | Mapping[str, Any] | None", default_timezone: str = "UTC") -> "TimePrefs":
        """Build prefs from a caller mapping, validating the zone when timezone aware."""

        if isinstance(prefs, TimePrefs):
            aware, name = prefs.timezone_aware, prefs.timezone_name
        else:
            prefs = prefs or {}
            aware = bool(prefs.get("timezoneAware", False))
            name = prefs.get("timezoneName") or None
        if aware:
            name = resolve_timezone(name, default_timezone)
        return cls(timezone_aware=aware, timezone_name=name)

    @property
    def active_timezone(self) -> Optional[str]:
        """Zone used for display math, ``None`` meaning UTC."""

        return self.timezone_name if self.timezone_aware else None

    def to_dict(self) -> dict[str, Any]:
        return {"timezoneAware": self.timezone_aware, "timezoneName": self.timezone_name}


@dataclass(frozen=True)
class BgPrefs:
    """Blood glucose display preferences."""

    bg_units: str = MGDL_UNITS
    bg_bounds: Mapping[str, float] = field(default_factory=lambda: dict(DEFAULT_BG_BOUNDS[MGDL_UNITS]))

    @classmethod
    def resolve(cls, prefs: "BgPrefs | Mapping[str, Any] | None", default_units: str = MGDL_UNITS) -> "BgPrefs":
        if isinstance(prefs, BgPrefs):
            return prefs
        prefs = prefs or {}
        units = prefs.get("bgUnits") or default_units
        if units not in (MGDL_UNITS, MMOLL_UNITS):
            raise InvalidQueryError(f"Unsupported bgUnits {units!r}")
        bounds = prefs.get("bgBounds") or DEFAULT_BG_BOUNDS[units]
        return cls(bg_units=units, bg_bounds=dict(bounds))

    def to_dict(self) -> dict[str, Any]:
        return {"bgUnits": self.bg_units, "bgBounds": dict(self.bg_bounds)}


@dataclass(frozen=True)
class EndpointWindow:
    """Half-open ``[start, end)`` window in epoch milliseconds."""

    range: tuple[int, int]
    days: float
    active_days: float

    @property
    def start(self) -> int:
        return self.range[0]

    @property
    def end(self) -> int:
        return self.range[1]

    @property
    def duration(self) -> int:
        return self.range[1] - self.range[0]

    def to_dict(self) -> dict[str, Any]:
        return {"range": list(self.range), "days": self.days, "activeDays": self.active_days}


@dataclass(frozen=True)
class EndpointPlan:
    current: Optional[EndpointWindow] = None
    next: Optional[EndpointWindow] = None
    prev: Optional[EndpointWindow] = None

    def get(self, key: str) -> Optional[EndpointWindow]:
        return getattr(self, key)

    def items(self) -> Iterator[tuple[str, EndpointWindow]]:
        for key in RANGE_KEYS:
            window = self.get(key)
            if window is not None:
                yield key, window


@dataclass(frozen=True)
class SortSpec:
    field: Optional[str] = None
    order: SortOrder = SortOrder.ASC

    @classmethod
    def parse(cls, value: "SortSpec | Mapping[str, Any] | str | None") -> "SortSpec":
        """Accept ``{"field", "order"}`` mappings or ``"field,order"`` strings."""

        if isinstance(value, SortSpec):
            return value
        if not value:
            return cls()
        if isinstance(value, str):
            parts = _split_csv(value)
            field_name = parts[0] if parts else None
            order = parts[1] if len(parts) > 1 else None
        else:
            field_name = value.get("field")
            order = value.get("order")
        descending = str(order).lower() == SortOrder.DESC.value
        return cls(field=field_name or None, order=SortOrder.DESC if descending else SortOrder.ASC)


@dataclass(frozen=True)
class TypeSelection:
    """Records of one type to return, the fields to keep and their ordering."""

    type: str
    fields: Optional[tuple[str, ...]] = None
    sort: SortSpec = field(default_factory=SortSpec)

    @classmethod
    def from_mapping(cls, type_name: str, spec: Mapping[str, Any] | None) -> "TypeSelection":
        spec = spec or {}
        select = spec.get("select")
        if isinstance(select, str):
            fields: Optional[tuple[str, ...]] = _split_csv(select)
        elif select is None:
            fields = None
        else:
            fields = tuple(select)
        return cls(type=type_name, fields=fields, sort=SortSpec.parse(spec.get("sort")))


def parse_types(types: Any) -> tuple[TypeSelection, ...]:
    """Normalise the ``types`` query parameter.

    Accepts a list of ``{"type", "select", "sort"}`` entries or a mapping of
    ``type -> {"select", "sort"}``. Anything else yields no selections.
    """

    if isinstance(types, Mapping):
        return tuple(TypeSelection.from_mapping(str(name), spec) for name, spec in types.items())
    if isinstance(types, (list, tuple)):
        selections: list[TypeSelection] = []
        for entry in types:
            if isinstance(entry, TypeSelection):
                selections.append(entry)
            elif isinstance(entry, Mapping) and entry.get("type"):
                selections.append(TypeSelection.from_mapping(str(entry["type"]), entry))
        return tuple(selections)
    return ()


def parse_stats(stats: Any) -> tuple[str, ...]:
    if not stats:
        return ()
    if isinstance(stats, str):
        return _split_csv(stats)
    return tuple(str(stat).strip() for stat in stats)


def parse_active_days(active_days: Any) -> tuple[int, ...]:
    """Return sorted weekday numbers, defaulting to the full week."""

    if active_days is None:
        return ALL_WEEKDAYS
    days: set[int] = set()
    for day in active_days:
        if isinstance(day, bool) or not isinstance(day, int) or not 0 <= day <= 6:
            raise InvalidQueryError(f"activeDays entries must be integers 0-6, got {day!r}")
        days.add(day)
    return tuple(sorted(days))


@dataclass(frozen=True)
class QueryParams:
    """Parameters for a single engine query."""

    endpoints: Optional[Sequence[Any]] = None
    active_days: Optional[Sequence[int]] = None
    types: tuple[TypeSelection, ...] = ()
    stats: tuple[str, ...] = ()
    time_prefs: "TimePrefs | Mapping[str, Any] | None" = None
    bg_prefs: "BgPrefs | Mapping[str, Any] | None" = None

    @classmethod
    def from_mapping(cls, query: Mapping[str, Any] | None) -> "QueryParams":
        """Build params from the camelCase mapping used by callers."""

        query = query or {}
        return cls(
            endpoints=query.get("endpoints"),
            active_days=query.get("activeDays"),
            types=parse_types(query.get("types")),
            stats=parse_stats(query.get("stats")),
            time_prefs=query.get("timePrefs"),
            bg_prefs=query.get("bgPrefs"),
        )


@dataclass(frozen=True)
class BgSources:
    cbg: bool = False
    smbg: bool = False
    current: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"cbg": self.cbg, "smbg": self.smbg}
        if self.current is not None:
            payload["current"] = self.current
        return payload


@dataclass(frozen=True)
class LatestPump:
    device_model: str = ""
    manufacturer: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"deviceModel": self.device_model, "manufacturer": self.manufacturer}


@dataclass(frozen=True)
class RangeResult:
    """Output for one of the current/next/prev windows."""

    endpoints: Optional[EndpointWindow] = None
    stats: Optional[Mapping[str, Any]] = None
    data: Optional[Mapping[str, list[dict[str, Any]]]] = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        if self.endpoints is not None:
            payload["endpoints"] = self.endpoints.to_dict()
        if self.stats is not None:
            payload["stats"] = dict(self.stats)
        if self.data is not None:
            payload["data"] = {key: list(records) for key, records in self.data.items()}
        return payload


@dataclass(frozen=True)
class QueryResult:
    data: Mapping[str, RangeResult]
    time_prefs: TimePrefs
    bg_prefs: BgPrefs
    latest_pump: LatestPump
    bg_sources: BgSources

    def to_dict(self) -> dict[str, Any]:
        return {
            "data": {key: self.data[key].to_dict() for key in RANGE_KEYS if key in self.data},
            "timePrefs": self.time_prefs.to_dict(),
            "bgPrefs": self.bg_prefs.to_dict(),
            "metaData": {
                "latestPump": self.latest_pump.to_dict(),
                "bgSources": self.bg_sources.to_dict(),
            },
        }
