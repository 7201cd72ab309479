"""Multi-dimensional in-memory index over device events.

The index keeps one deduplicated collection of records and a set of sorted
dimensions over it (time, device time, weekday and type). Filters are not
stored on the index: every query starts from :meth:`Crossfilter.view`, an
immutable :class:`FilterView` whose ``filter_*`` methods return new views.
A filter on any dimension narrows the records visible through all of them.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from functools import reduce
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

import numpy as np
from pydantic import ValidationError

import models.event_models as event_models

from .constants import ALL_WEEKDAYS
from .errors import UnknownDimensionError
from .models import DuplicatePolicy
from .timeutils import weekdays_utc

Record = Mapping[str, Any]

TIME = "time"
DEVICE_TIME = "deviceTime"
DAY_OF_WEEK = "dayOfWeek"
TYPE = "type"
DIMENSIONS: tuple[str, ...] = (TIME, DEVICE_TIME, DAY_OF_WEEK, TYPE)

_EMPTY_POSITIONS = np.empty(0, dtype=np.int64)


class Dimension:
    """Records of a collection ordered by one key.

    Records without a key are kept aside; they are visible while the dimension
    is unfiltered but never match an exact, range or predicate filter.
    """

    def __init__(self, name: str, keys: Sequence[Any], *, numeric: bool) -> None:
        present = [pos for pos, key in enumerate(keys) if key is not None]
        if numeric:
            raw = np.asarray([keys[pos] for pos in present], dtype=np.int64)
        else:
            raw = np.empty(len(present), dtype=object)
            raw[:] = [keys[pos] for pos in present]
        order = np.argsort(raw, kind="stable")
        self.name = name
        self._size = len(keys)
        self._keys = raw[order]
        self._positions = np.asarray(present, dtype=np.int64)[order]
        if len(self._keys):
            self._distinct, self._starts = np.unique(self._keys, return_index=True)
        else:
            self._distinct, self._starts = self._keys, _EMPTY_POSITIONS

    def __len__(self) -> int:
        return self._size

    @property
    def keys(self) -> np.ndarray:
        return self._keys

    def exact(self, value: Any) -> np.ndarray:
        """Positions whose key equals ``value``, in O(log n + k)."""

        return self.range(value, value, inclusive=True)

    def range(self, lower: Any, upper: Any, *, inclusive: bool = False) -> np.ndarray:
        """Positions with ``lower <= key < upper`` (``<=`` upper when inclusive)."""

        try:
            start = int(np.searchsorted(self._keys, lower, side="left"))
            stop = int(np.searchsorted(self._keys, upper, side="right" if inclusive else "left"))
        except (TypeError, ValueError):
            # key of a different kind than the dimension holds
            return _EMPTY_POSITIONS
        if stop <= start:
            return _EMPTY_POSITIONS
        return np.sort(self._positions[start:stop])

    def where(self, predicate: Callable[[Any], bool]) -> np.ndarray:
        """Positions whose key satisfies ``predicate``, testing each distinct key once."""

        bounds = list(self._starts) + [len(self._keys)]
        chunks = [
            self._positions[bounds[idx] : bounds[idx + 1]]
            for idx, key in enumerate(self._distinct)
            if predicate(key)
        ]
        if not chunks:
            return _EMPTY_POSITIONS
        return np.sort(np.concatenate(chunks))

    def ordered(self, positions: np.ndarray, *, descending: bool = False) -> np.ndarray:
        """Return ``positions`` ordered by this dimension's key, keyless records last."""

        if not len(positions):
            return positions
        wanted = np.zeros(self._size, dtype=bool)
        wanted[positions] = True
        keyed = self._positions[wanted[self._positions]]
        wanted[keyed] = False
        if descending:
            keyed = keyed[::-1]
        return np.concatenate([keyed, np.flatnonzero(wanted)])


@dataclass(frozen=True, eq=False)
class _Snapshot:
    records: tuple[Record, ...]
    dimensions: Mapping[str, Dimension]
    ids: Mapping[str, int]


def _build_snapshot(records: Sequence[Record]) -> _Snapshot:
    times = np.asarray([record["time"] for record in records], dtype=np.int64)
    weekdays = weekdays_utc(times).tolist() if len(times) else []
    dimensions = {
        TIME: Dimension(TIME, times.tolist(), numeric=True),
        DEVICE_TIME: Dimension(DEVICE_TIME, [record.get("deviceTime") for record in records], numeric=True),
        DAY_OF_WEEK: Dimension(DAY_OF_WEEK, weekdays, numeric=True),
        TYPE: Dimension(TYPE, [record["type"] for record in records], numeric=False),
    }
    return _Snapshot(
        records=tuple(records),
        dimensions=MappingProxyType(dimensions),
        ids=MappingProxyType({record["id"]: pos for pos, record in enumerate(records)}),
    )


def _coerce_record(raw: Any) -> Optional[Record]:
    if not isinstance(raw, Mapping):
        logging.debug(f"Dropping non-mapping event of type {type(raw).__name__}")
        return None
    try:
        event = event_models.RawEvent.model_validate(dict(raw))
    except ValidationError as exc:
        logging.debug(f"Dropping malformed event id={raw.get('id')!r}: {exc.error_count()} error(s)")
        return None
    return MappingProxyType(event.to_record())


@dataclass(frozen=True, eq=False)
class FilterView:
    """Read-only set of filters applied to one index snapshot.

    Every filter method returns a new view; views are safe to share between
    threads and are unaffected by later ingestion into the index.
    """

    _snapshot: _Snapshot
    _filters: Mapping[str, np.ndarray] = field(default_factory=lambda: MappingProxyType({}))

    def _dimension(self, name: str) -> Dimension:
        try:
            return self._snapshot.dimensions[name]
        except KeyError:
            raise UnknownDimensionError(name) from None

    def _with(self, name: str, positions: Optional[np.ndarray]) -> "FilterView":
        self._dimension(name)
        filters = dict(self._filters)
        if positions is None:
            filters.pop(name, None)
        else:
            filters[name] = positions
        return FilterView(self._snapshot, MappingProxyType(filters))

    def filter_exact(self, name: str, value: Any) -> "FilterView":
        return self._with(name, self._dimension(name).exact(value))

    def filter_range(self, name: str, lower: Any, upper: Any) -> "FilterView":
        return self._with(name, self._dimension(name).range(lower, upper))

    def filter_function(self, name: str, predicate: Callable[[Any], bool]) -> "FilterView":
        return self._with(name, self._dimension(name).where(predicate))

    def filter_all(self, name: str) -> "FilterView":
        return self._with(name, None)

    def clear(self) -> "FilterView":
        return FilterView(self._snapshot)

    clear_filters = clear

    def by_endpoints(self, endpoints: Sequence[int]) -> "FilterView":
        """Restrict to records whose ``time`` lies in ``[start, end)``."""

        start, end = endpoints
        return self.filter_range(TIME, start, end)

    def by_active_days(self, active_days: Iterable[int]) -> "FilterView":
        allowed = frozenset(active_days)
        if allowed.issuperset(ALL_WEEKDAYS):
            return self.filter_all(DAY_OF_WEEK)
        return self.filter_function(DAY_OF_WEEK, lambda day: day in allowed)

    def by_type(self, type_name: str) -> "FilterView":
        return self.filter_exact(TYPE, type_name)

    @property
    def filtered_dimensions(self) -> tuple[str, ...]:
        return tuple(self._filters)

    def positions(self) -> np.ndarray:
        """Sorted positions of every record passing all active filters."""

        if not self._filters:
            return np.arange(len(self._snapshot.records), dtype=np.int64)
        return reduce(
            lambda acc, positions: np.intersect1d(acc, positions, assume_unique=True),
            self._filters.values(),
        )

    def count(self) -> int:
        return int(len(self.positions()))

    def records(self, order_by: str = TIME) -> list[Record]:
        """Visible records ordered ascending by ``order_by``."""

        return self.bottom(None, order_by)

    def bottom(self, limit: Optional[int] = None, order_by: str = TIME) -> list[Record]:
        ordered = self._dimension(order_by).ordered(self.positions())
        if limit is not None:
            ordered = ordered[:limit]
        return [self._snapshot.records[pos] for pos in ordered]

    def top(self, limit: Optional[int] = None, order_by: str = TIME) -> list[Record]:
        """Visible records ordered descending by ``order_by``; keyless records come last."""

        ordered = self._dimension(order_by).ordered(self.positions(), descending=True)
        if limit is not None:
            ordered = ordered[:limit]
        return [self._snapshot.records[pos] for pos in ordered]


class Crossfilter:
    """Deduplicated event collection with sorted dimensions."""

    def __init__(
        self,
        records: Iterable[Any] = (),
        *,
        duplicate_policy: DuplicatePolicy = DuplicatePolicy.FIRST,
    ) -> None:
        self._duplicate_policy = DuplicatePolicy(duplicate_policy)
        self._lock = threading.Lock()
        self._snapshot = _build_snapshot(())
        if records:
            self.add(records)

    @property
    def duplicate_policy(self) -> DuplicatePolicy:
        return self._duplicate_policy

    def add(self, events: Iterable[Any]) -> int:
        """Index ``events``, returning how many distinct records were accepted.

        Entries that are not well-formed events are dropped. When the batch
        repeats an id, the duplicate policy picks the surviving entry; the batch
        entry then replaces any record already indexed under that id.
        """

        accepted: dict[str, Record] = {}
        rejected = 0
        duplicates = 0
        for raw in events:
            record = _coerce_record(raw)
            if record is None:
                rejected += 1
                continue
            if record["id"] in accepted:
                duplicates += 1
                if self._duplicate_policy is DuplicatePolicy.FIRST:
                    continue
            accepted[record["id"]] = record

        with self._lock:
            kept = [record for record in self._snapshot.records if record["id"] not in accepted]
            replaced = len(self._snapshot.records) - len(kept)
            self._snapshot = _build_snapshot(kept + list(accepted.values()))

        logging.info(
            f"Indexed {len(accepted)} events ({rejected} malformed dropped, "
            f"{duplicates} duplicate ids in batch, {replaced} replaced)"
        )
        return len(accepted)

    def remove(self, predicate: Callable[[Record], bool]) -> int:
        """Drop every record matching ``predicate``; returns the number removed."""

        with self._lock:
            kept = [record for record in self._snapshot.records if not predicate(record)]
            removed = len(self._snapshot.records) - len(kept)
            if removed:
                self._snapshot = _build_snapshot(kept)
        logging.info(f"Removed {removed} events")
        return removed

    def size(self) -> int:
        return len(self._snapshot.records)

    def __len__(self) -> int:
        return self.size()

    def all(self) -> tuple[Record, ...]:
        return self._snapshot.records

    def get(self, record_id: str) -> Optional[Record]:
        snapshot = self._snapshot
        position = snapshot.ids.get(record_id)
        return None if position is None else snapshot.records[position]

    def dimension(self, name: str) -> Dimension:
        try:
            return self._snapshot.dimensions[name]
        except KeyError:
            raise UnknownDimensionError(name) from None

    def view(self) -> FilterView:
        """Return an unfiltered view of the current collection."""

        return FilterView(self._snapshot)
