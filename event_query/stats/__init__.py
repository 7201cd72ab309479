"""Summary statistics and their dispatcher; importing registers the built-ins."""
from __future__ import annotations

from importlib import import_module

from .registry import StatRegistry, register_stat, registry
from .stat_base import StatContext, StatKind, StatRoutine

_MODULES = [
    "glucose",
    "insulin",
]

for _module in _MODULES:
    import_module(f"{__name__}.{_module}")

__all__ = [
    "StatContext",
    "StatKind",
    "StatRegistry",
    "StatRoutine",
    "register_stat",
    "registry",
]
