"""Registry mapping statistic kinds to their routines."""
from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Dict, Type

from ..crossfilter import FilterView
from ..models import EndpointWindow
from .stat_base import StatContext, StatKind, StatRoutine


class StatRegistry:
    """Keeps one routine instance per stat kind."""

    def __init__(self) -> None:
        self._routines: Dict[StatKind, StatRoutine] = {}

    def register(self, routine_cls: Type[StatRoutine]) -> Type[StatRoutine]:
        if routine_cls.kind in self._routines:
            raise ValueError(f"Stat '{routine_cls.kind.value}' already registered")
        self._routines[routine_cls.kind] = routine_cls()
        return routine_cls

    def clear(self) -> None:
        self._routines.clear()

    def get(self, kind: StatKind) -> StatRoutine:
        return self._routines[kind]

    def kinds(self) -> Iterable[StatKind]:
        return self._routines.keys()

    def dispatch(
        self,
        stat_ids: Iterable[str],
        view: FilterView,
        endpoint: EndpointWindow,
        context: StatContext,
    ) -> dict[str, Any]:
        """Compute each requested stat; unknown identifiers are skipped."""

        results: dict[str, Any] = {}
        for stat_id in stat_ids:
            kind = StatKind.parse(stat_id)
            routine = self._routines.get(kind) if kind is not None else None
            if routine is None:
                logging.debug(f"Skipping unknown stat {stat_id!r}")
                continue
            results[stat_id] = routine.compute(view, endpoint, context)
        return results


registry = StatRegistry()


def register_stat(routine_cls: Type[StatRoutine]) -> Type[StatRoutine]:
    """Decorator for registering a stat routine at definition time."""

    return registry.register(routine_cls)
