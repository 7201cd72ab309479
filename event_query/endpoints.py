"""Plan the current window and its equal-length neighbours."""
from __future__ import annotations

from typing import Any, Optional, Sequence

from .constants import MS_IN_DAY
from .errors import InvalidQueryError
from .models import EndpointPlan, EndpointWindow
from .timeutils import to_epoch_ms


def parse_endpoints(endpoints: Sequence[Any]) -> tuple[int, int]:
    """Return ``(start, end)`` epoch milliseconds for a caller-supplied pair."""

    if isinstance(endpoints, (str, bytes)) or len(endpoints) != 2:
        raise InvalidQueryError("endpoints must be a [start, end] pair")
    start, end = (to_epoch_ms(value) for value in endpoints)
    if start is None or end is None:
        raise InvalidQueryError(f"Unparseable endpoints {list(endpoints)!r}")
    if end <= start:
        raise InvalidQueryError(f"endpoints end ({end}) must be after start ({start})")
    return start, end


def plan_endpoints(
    endpoints: Optional[Sequence[Any]],
    active_days: Sequence[int],
) -> EndpointPlan:
    """Derive current, next and prev windows.

    All three share the current window's duration. ``activeDays`` scales the
    day count by the share of selected weekdays, which is only exact when the
    window spans a whole number of weeks.
    """

    if endpoints is None:
        return EndpointPlan()

    start, end = parse_endpoints(endpoints)
    span = end - start
    days = span / MS_IN_DAY
    active = days / 7 * len(active_days)

    return EndpointPlan(
        current=EndpointWindow(range=(start, end), days=days, active_days=active),
        next=EndpointWindow(range=(end, end + span), days=days, active_days=active),
        prev=EndpointWindow(range=(start - span, start), days=days, active_days=active),
    )
