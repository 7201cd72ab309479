"""Engine configuration."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

from .constants import CGM_READING_MINUTES, MGDL_UNITS, MMOLL_UNITS
from .models import DuplicatePolicy
from .timeutils import resolve_timezone

ENV_PREFIX = "EVENT_QUERY_"


@dataclass(frozen=True)
class EngineConfig:
    """Tunable defaults for a :class:`~event_query.engine.DataEngine`."""

    duplicate_policy: DuplicatePolicy = DuplicatePolicy.FIRST
    default_bg_units: str = MGDL_UNITS
    default_timezone: str = "UTC"
    cgm_reading_minutes: int = CGM_READING_MINUTES

    def __post_init__(self) -> None:
        object.__setattr__(self, "duplicate_policy", DuplicatePolicy(self.duplicate_policy))
        if self.default_bg_units not in (MGDL_UNITS, MMOLL_UNITS):
            raise ValueError(f"default_bg_units must be {MGDL_UNITS!r} or {MMOLL_UNITS!r}")
        if self.cgm_reading_minutes <= 0:
            raise ValueError("cgm_reading_minutes must be positive")
        if resolve_timezone(self.default_timezone, "") != self.default_timezone:
            raise ValueError(f"Unknown default_timezone {self.default_timezone!r}")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "EngineConfig":
        """Read overrides from ``EVENT_QUERY_*`` environment variables."""

        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            duplicate_policy=DuplicatePolicy(
                env.get(f"{ENV_PREFIX}DUPLICATE_POLICY", defaults.duplicate_policy.value).strip().lower()
            ),
            default_bg_units=env.get(f"{ENV_PREFIX}BG_UNITS", defaults.default_bg_units).strip(),
            default_timezone=env.get(f"{ENV_PREFIX}DEFAULT_TIMEZONE", defaults.default_timezone).strip(),
            cgm_reading_minutes=int(env.get(f"{ENV_PREFIX}CGM_READING_MINUTES", defaults.cgm_reading_minutes)),
        )
