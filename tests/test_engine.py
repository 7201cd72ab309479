from pathlib import Path
import sys
from concurrent.futures import ThreadPoolExecutor

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from event_query.config import EngineConfig
from event_query.constants import MS_IN_DAY, MS_IN_HOUR
from event_query.engine import DataEngine
from event_query.errors import InvalidQueryError, MissingEndpointsError
from event_query.models import QueryParams, SortSpec, TypeSelection

T0 = 1704067200000  # Monday 2024-01-01T00:00:00Z
WEEK = [T0, T0 + 7 * MS_IN_DAY]


def _week_of_events():
    events = []
    for day in range(7):
        noon = T0 + day * MS_IN_DAY + 12 * MS_IN_HOUR
        events.append({"id": f"cbg-{day}", "type": "cbg", "time": noon, "value": 180, "units": "mg/dL"})
        events.append(
            {"id": f"smbg-{day}", "type": "smbg", "time": noon + MS_IN_HOUR, "value": 100 + 10 * day, "units": "mg/dL"}
        )
    events.append(
        {"id": "up-1", "type": "upload", "time": T0 - MS_IN_DAY, "deviceTags": ["insulin-pump"], "source": "Insulet", "deviceModel": "Dash"}
    )
    events.append(
        {"id": "up-2", "type": "upload", "time": T0, "deviceTags": ["insulin-pump", "cgm"], "source": "carelink", "deviceModel": "1780"}
    )
    events.append({"id": "up-3", "type": "upload", "time": T0 + MS_IN_HOUR, "deviceTags": ["bgm"], "source": "OneTouch"})
    return events


@pytest.fixture
def engine():
    return DataEngine(_week_of_events())


def test_mmoll_query_converts_selected_records(engine):
    result = engine.query(
        {
            "endpoints": WEEK,
            "bgPrefs": {"bgUnits": "mmol/L"},
            "types": {"cbg": {"select": "id,value,units"}},
        }
    )
    records = result.data["current"].data["cbg"]
    assert len(records) == 7
    for record in records:
        assert set(record) == {"id", "value", "units"}
        assert record["value"] == pytest.approx(9.99, abs=0.01)
        assert record["units"] == "mmol/L"
    assert result.bg_prefs.bg_bounds["targetUpperBound"] == 10.0


def test_active_days_keep_only_selected_weekdays(engine):
    result = engine.query({"endpoints": WEEK, "activeDays": [1, 3, 5], "types": [{"type": "cbg", "select": ["id"]}]})
    assert result.data["current"].data["cbg"] == [{"id": "cbg-0"}, {"id": "cbg-2"}, {"id": "cbg-4"}]
    assert result.data["current"].endpoints.active_days == pytest.approx(3)


def test_neighbouring_windows(engine):
    engine.add_data([{"id": "cbg-next", "type": "cbg", "time": WEEK[1] + MS_IN_HOUR, "value": 90, "units": "mg/dL"}])
    result = engine.query({"endpoints": WEEK, "types": {"cbg": {"select": "id"}}})
    assert result.data["next"].data["cbg"] == [{"id": "cbg-next"}]
    assert result.data["prev"].data["cbg"] == []
    assert result.data["prev"].endpoints.range == (T0 - 7 * MS_IN_DAY, T0)


def test_sort_descending_by_field(engine):
    result = engine.query({"endpoints": WEEK, "types": {"smbg": {"select": "id,value", "sort": "value,desc"}}})
    values = [record["value"] for record in result.data["current"].data["smbg"]]
    assert values == sorted(values, reverse=True)
    assert values[0] == 160


def test_sort_puts_missing_values_last():
    engine = DataEngine(
        [
            {"id": "b", "type": "smbg", "time": T0 + 1, "value": 200, "units": "mg/dL"},
            {"id": "none", "type": "smbg", "time": T0 + 2},
            {"id": "a", "type": "smbg", "time": T0 + 3, "value": 90, "units": "mg/dL"},
        ]
    )
    params = QueryParams(
        endpoints=WEEK,
        types=(TypeSelection(type="smbg", fields=("id",), sort=SortSpec(field="value")),),
    )
    records = engine.query(params).data["current"].data["smbg"]
    assert [record["id"] for record in records] == ["a", "b", "none"]


def test_full_records_returned_without_selection(engine):
    records = engine.query({"endpoints": WEEK, "types": [{"type": "cbg"}]}).data["current"].data["cbg"]
    first = records[0]
    assert first["id"] == "cbg-0"
    assert first["normalTime"] == first["time"]
    assert first["displayOffset"] == 0
    assert first["msPer24"] == 12 * MS_IN_HOUR


def test_timezone_aware_query(engine):
    result = engine.query(
        {
            "endpoints": WEEK,
            "timePrefs": {"timezoneAware": True, "timezoneName": "America/New_York"},
            "types": {"cbg": {"select": "id,displayOffset,msPer24"}},
        }
    )
    first = result.data["current"].data["cbg"][0]
    assert first == {"id": "cbg-0", "displayOffset": -300, "msPer24": 7 * MS_IN_HOUR}


def test_unknown_type_gives_empty_list(engine):
    result = engine.query({"endpoints": WEEK, "types": {"pumpSettings": {}}})
    assert result.data["current"].data == {"pumpSettings": []}


def test_stats_only_for_current_window(engine):
    result = engine.query({"endpoints": WEEK, "stats": "averageGlucose,readingsInRange,bogus"})
    stats = result.data["current"].stats
    assert set(stats) == {"averageGlucose", "readingsInRange"}
    assert stats["averageGlucose"] == {"averageGlucose": 180.0, "total": 7}
    assert stats["readingsInRange"]["total"] == 7
    assert result.data["next"].stats is None
    assert result.data["prev"].stats is None


def test_stats_without_endpoints_raise(engine):
    with pytest.raises(MissingEndpointsError):
        engine.query({"stats": ["averageGlucose"]})


def test_bad_bg_units_raise(engine):
    with pytest.raises(InvalidQueryError):
        engine.query({"endpoints": WEEK, "bgPrefs": {"bgUnits": "mg"}})


def test_query_without_endpoints_returns_metadata_only(engine):
    result = engine.query()
    assert all(range_result.endpoints is None for range_result in result.data.values())
    payload = result.to_dict()
    assert payload["data"] == {"current": {}, "next": {}, "prev": {}}
    assert payload["metaData"] == {
        "latestPump": {"deviceModel": "1780", "manufacturer": "medtronic"},
        "bgSources": {"cbg": True, "smbg": True, "current": "cbg"},
    }
    assert payload["timePrefs"] == {"timezoneAware": False, "timezoneName": None}
    assert payload["bgPrefs"]["bgUnits"] == "mg/dL"


def test_bg_sources_fall_back_to_meter():
    engine = DataEngine([{"id": "s", "type": "smbg", "time": T0, "value": 100, "units": "mg/dL"}])
    sources = engine.query().bg_sources
    assert (sources.cbg, sources.smbg, sources.current) == (False, True, "smbg")


def test_no_pump_upload_gives_blank_pump():
    pump = DataEngine([{"id": "s", "type": "smbg", "time": T0}]).query().latest_pump
    assert pump.to_dict() == {"deviceModel": "", "manufacturer": ""}


def test_result_to_dict_shape(engine):
    payload = engine.query({"endpoints": WEEK, "stats": ["sensorUsage"], "types": {"cbg": {"select": "id"}}}).to_dict()
    current = payload["data"]["current"]
    assert current["endpoints"]["range"] == WEEK
    assert current["endpoints"]["days"] == 7
    assert set(current) == {"endpoints", "stats", "data"}
    assert set(payload["data"]["next"]) == {"endpoints", "data"}


def test_remove_data(engine):
    assert engine.remove_data(lambda record: record["type"] == "upload") == 3
    assert engine.query().latest_pump.manufacturer == ""
    assert engine.index.size() == 14


def test_duplicate_policy_from_config():
    events = [
        {"id": "a", "type": "cbg", "time": T0, "value": 180, "units": "mg/dL"},
        {"id": "a", "type": "cbg", "time": T0, "value": 999, "units": "mg/dL"},
    ]
    first = DataEngine(events)
    last = DataEngine(events, config=EngineConfig(duplicate_policy="last"))
    assert first.index.get("a")["value"] == 180
    assert last.index.get("a")["value"] == 999


def test_concurrent_queries_do_not_share_filters(engine):
    queries = [
        {"endpoints": WEEK, "activeDays": [day], "types": {"cbg": {"select": "id"}}} for day in range(7)
    ]
    with ThreadPoolExecutor(max_workers=4) as pool:
        results = list(pool.map(engine.query, queries))
    # day 0 is Sunday, the last day of the week starting Monday
    expected = [[{"id": f"cbg-{(day - 1) % 7}"}] for day in range(7)]
    assert [result.data["current"].data["cbg"] for result in results] == expected


def test_malformed_field_values_do_not_break_queries():
    engine = DataEngine(
        [
            {"id": "hi", "type": "cbg", "time": T0 + MS_IN_HOUR, "value": "High", "units": "mg/dL"},
            {"id": "ok", "type": "cbg", "time": T0 + 2 * MS_IN_HOUR, "value": 180, "units": "mg/dL"},
            {"id": "b", "type": "basal", "time": T0, "duration": "1h", "rate": "fast", "deliveryType": "automated"},
            {"id": "f", "type": "food", "time": T0, "nutrition": "lots"},
        ]
    )
    result = engine.query(
        {
            "endpoints": WEEK,
            "bgPrefs": {"bgUnits": "mmol/L"},
            "stats": ["averageGlucose", "timeInRange", "totalInsulin", "timeInAuto", "carbs"],
            "types": {"cbg": {"select": "id,value"}, "basal": {"select": "id,normalEnd"}},
        }
    )
    current = result.data["current"]
    assert current.data["cbg"][0] == {"id": "hi", "value": "High"}
    assert current.data["cbg"][1]["value"] == pytest.approx(9.99, abs=0.01)
    assert current.data["basal"] == [{"id": "b", "normalEnd": T0}]
    assert current.stats["averageGlucose"]["total"] == 1
    assert current.stats["totalInsulin"]["basal"] == 0
    assert current.stats["timeInAuto"] == {"automated": 0.0, "manual": 0.0}
    assert current.stats["carbs"]["carbs"] == 0


def test_sort_on_mixed_value_types():
    engine = DataEngine(
        [
            {"id": "str", "type": "bolus", "time": T0 + 1, "normal": "2"},
            {"id": "missing", "type": "bolus", "time": T0 + 2},
            {"id": "num", "type": "bolus", "time": T0 + 3, "normal": 1},
            {"id": "text", "type": "bolus", "time": T0 + 4, "normal": "1.5"},
        ]
    )
    ascending = engine.query({"endpoints": WEEK, "types": {"bolus": {"select": "id", "sort": "normal"}}})
    assert [r["id"] for r in ascending.data["current"].data["bolus"]] == ["num", "text", "str", "missing"]
    descending = engine.query({"endpoints": WEEK, "types": {"bolus": {"select": "id", "sort": "normal,desc"}}})
    assert [r["id"] for r in descending.data["current"].data["bolus"]] == ["missing", "str", "text", "num"]
