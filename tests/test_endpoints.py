from pathlib import Path
import sys

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from event_query.constants import ALL_WEEKDAYS, MS_IN_DAY
from event_query.endpoints import parse_endpoints, plan_endpoints
from event_query.errors import InvalidQueryError

T0 = 1704067200000  # 2024-01-01T00:00:00Z


def test_windows_are_adjacent_and_equal_length():
    plan = plan_endpoints([T0, T0 + 7 * MS_IN_DAY], ALL_WEEKDAYS)
    assert plan.current.range == (T0, T0 + 7 * MS_IN_DAY)
    assert plan.next.range == (T0 + 7 * MS_IN_DAY, T0 + 14 * MS_IN_DAY)
    assert plan.prev.range == (T0 - 7 * MS_IN_DAY, T0)
    assert {window.duration for _, window in plan.items()} == {7 * MS_IN_DAY}
    assert [key for key, _ in plan.items()] == ["current", "next", "prev"]


def test_days_and_active_days():
    plan = plan_endpoints([T0, T0 + 14 * MS_IN_DAY], (1, 3, 5))
    for _, window in plan.items():
        assert window.days == 14
        assert window.active_days == pytest.approx(6)


def test_partial_days_are_fractional():
    plan = plan_endpoints([T0, T0 + MS_IN_DAY // 2], ALL_WEEKDAYS)
    assert plan.current.days == 0.5
    assert plan.current.active_days == pytest.approx(0.5)


def test_iso_endpoints_accepted():
    plan = plan_endpoints(["2024-01-01T00:00:00Z", "2024-01-08T00:00:00Z"], ALL_WEEKDAYS)
    assert plan.current.range == (T0, T0 + 7 * MS_IN_DAY)


def test_no_endpoints_gives_empty_plan():
    plan = plan_endpoints(None, ALL_WEEKDAYS)
    assert plan.current is None and plan.next is None and plan.prev is None
    assert list(plan.items()) == []


def test_window_to_dict():
    window = plan_endpoints([T0, T0 + MS_IN_DAY], (1,)).current
    assert window.to_dict() == {"range": [T0, T0 + MS_IN_DAY], "days": 1.0, "activeDays": pytest.approx(1 / 7)}


@pytest.mark.parametrize(
    "endpoints",
    [
        [T0],
        [T0, T0 + 1, T0 + 2],
        "2024-01-01",
        [T0, "garbage"],
        [T0, T0],
        [T0 + MS_IN_DAY, T0],
    ],
)
def test_invalid_endpoints_rejected(endpoints):
    with pytest.raises(InvalidQueryError):
        parse_endpoints(endpoints)


def test_invalid_query_error_is_a_value_error():
    with pytest.raises(ValueError):
        plan_endpoints([T0, T0 - 1], ALL_WEEKDAYS)
