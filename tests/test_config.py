from pathlib import Path
import sys

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from event_query.config import EngineConfig
from event_query.models import DuplicatePolicy


def test_defaults():
    config = EngineConfig()
    assert config.duplicate_policy is DuplicatePolicy.FIRST
    assert config.default_bg_units == "mg/dL"
    assert config.default_timezone == "UTC"
    assert config.cgm_reading_minutes == 5


def test_from_env_overrides():
    config = EngineConfig.from_env(
        {
            "EVENT_QUERY_DUPLICATE_POLICY": "LAST",
            "EVENT_QUERY_BG_UNITS": "mmol/L",
            "EVENT_QUERY_DEFAULT_TIMEZONE": "Europe/London",
            "EVENT_QUERY_CGM_READING_MINUTES": "15",
        }
    )
    assert config == EngineConfig(
        duplicate_policy=DuplicatePolicy.LAST,
        default_bg_units="mmol/L",
        default_timezone="Europe/London",
        cgm_reading_minutes=15,
    )


def test_from_env_reads_process_environment(monkeypatch):
    monkeypatch.setenv("EVENT_QUERY_DUPLICATE_POLICY", "last")
    monkeypatch.delenv("EVENT_QUERY_BG_UNITS", raising=False)
    config = EngineConfig.from_env()
    assert config.duplicate_policy is DuplicatePolicy.LAST
    assert config.default_bg_units == "mg/dL"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"duplicate_policy": "newest"},
        {"default_bg_units": "mg"},
        {"default_timezone": "Nowhere/Special"},
        {"cgm_reading_minutes": 0},
    ],
)
def test_invalid_values_raise(kwargs):
    with pytest.raises(ValueError):
        EngineConfig(**kwargs)
