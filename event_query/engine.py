"""Query orchestration over the indexed event collection."""
from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from .config import EngineConfig
from .crossfilter import Crossfilter, FilterView, Record
from .endpoints import plan_endpoints
from .errors import MissingEndpointsError
from .metadata import get_bg_sources, get_latest_pump
from .models import (
    RANGE_KEYS,
    BgPrefs,
    EndpointWindow,
    QueryParams,
    QueryResult,
    RangeResult,
    SortOrder,
    TimePrefs,
    TypeSelection,
    parse_active_days,
)
from .normalizer import normalize
from .stats import StatContext, StatRegistry
from .stats import registry as default_stat_registry
from .timeutils import timed


def _sort_key(field_name: str) -> Callable[[Mapping[str, Any]], tuple[bool, bool, Any]]:
    # numbers before other values, missing values last; mixed types never compare directly
    def _key(record: Mapping[str, Any]) -> tuple[bool, bool, Any]:
        value = record.get(field_name)
        if value is None:
            return (True, True, "")
        if isinstance(value, (int, float)):
            return (False, False, value)
        return (False, True, str(value))

    return _key


def _project(record: Mapping[str, Any], fields: Optional[Sequence[str]]) -> dict[str, Any]:
    """Keep ``fields`` of ``record``; with no selection the whole record is returned.

    Unlike lodash `_.pick(record, undefined)`, which yields an empty object,
    an absent selection keeps every field.
    """

    if fields is None:
        return dict(record)
    return {name: record[name] for name in fields if name in record}


class DataEngine:
    """Answers windowed queries over one session's device events.

    Each query works on its own immutable filter view, so queries never leave
    filter state behind and may run concurrently. Adding or removing data swaps
    in a rebuilt index without disturbing queries already running.
    """

    def __init__(
        self,
        data: Iterable[Any] = (),
        *,
        config: EngineConfig | None = None,
        stat_registry: StatRegistry | None = None,
    ) -> None:
        self._config = config or EngineConfig()
        self._stats = stat_registry or default_stat_registry
        self._index = Crossfilter(duplicate_policy=self._config.duplicate_policy)
        if data:
            self.add_data(data)

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def index(self) -> Crossfilter:
        return self._index

    def add_data(self, data: Iterable[Any]) -> int:
        with timed("addData"):
            return self._index.add(data)

    def remove_data(self, predicate: Callable[[Record], bool]) -> int:
        return self._index.remove(predicate)

    def query(self, query: QueryParams | Mapping[str, Any] | None = None) -> QueryResult:
        """Run one query and assemble the current/next/prev result.

        Raises :class:`MissingEndpointsError` when stats are requested without
        endpoints; every other gap in the request only narrows the output.
        """

        params = query if isinstance(query, QueryParams) else QueryParams.from_mapping(query)
        if params.stats and params.endpoints is None:
            raise MissingEndpointsError("stats were requested but no endpoints define a current window")

        with timed("queryData total"):
            base = self._index.view()

            with timed("setMetaData"):
                bg_sources = get_bg_sources(base)
                latest_pump = get_latest_pump(base)

            time_prefs = TimePrefs.resolve(params.time_prefs, self._config.default_timezone)
            bg_prefs = BgPrefs.resolve(params.bg_prefs, self._config.default_bg_units)
            active_days = parse_active_days(params.active_days)
            plan = plan_endpoints(params.endpoints, active_days)
            context = StatContext(
                bg_prefs=bg_prefs,
                bg_source=bg_sources.current,
                cgm_reading_minutes=self._config.cgm_reading_minutes,
            )

            data: dict[str, RangeResult] = {}
            for key in RANGE_KEYS:
                window = plan.get(key)
                if window is None:
                    data[key] = RangeResult()
                    continue
                view = base.by_endpoints(window.range).by_active_days(active_days)
                data[key] = RangeResult(
                    endpoints=window,
                    stats=self._compute_stats(params, key, view, window, context),
                    data=self._select_types(params.types, key, view, time_prefs, bg_prefs),
                )

        logging.debug(f"Query returned {sum(len(r.data or {}) for r in data.values())} type slices")
        return QueryResult(
            data=data,
            time_prefs=time_prefs,
            bg_prefs=bg_prefs,
            latest_pump=latest_pump,
            bg_sources=bg_sources,
        )

    def _compute_stats(
        self,
        params: QueryParams,
        key: str,
        view: FilterView,
        window: EndpointWindow,
        context: StatContext,
    ) -> Optional[dict[str, Any]]:
        if key != "current" or not params.stats:
            return None
        with timed("generate stats"):
            return self._stats.dispatch(params.stats, view, window, context)

    def _select_types(
        self,
        selections: Sequence[TypeSelection],
        key: str,
        view: FilterView,
        time_prefs: TimePrefs,
        bg_prefs: BgPrefs,
    ) -> Optional[dict[str, list[dict[str, Any]]]]:
        if not selections:
            return None
        return {
            selection.type: self._select_type(selection, key, view, time_prefs, bg_prefs)
            for selection in selections
        }

    def _select_type(
        self,
        selection: TypeSelection,
        key: str,
        view: FilterView,
        time_prefs: TimePrefs,
        bg_prefs: BgPrefs,
    ) -> list[dict[str, Any]]:
        label = f"{selection.type} | {key}"
        records = view.by_type(selection.type).records()

        with timed(f"normalize | {label}"):
            normalized = [normalize(record, time_prefs, bg_prefs) for record in records]

        with timed(f"sort | {label}"):
            if selection.sort.field:
                normalized.sort(key=_sort_key(selection.sort.field))
            if selection.sort.order is SortOrder.DESC:
                normalized.reverse()

        with timed(f"select fields | {label}"):
            return [_project(record, selection.fields) for record in normalized]
