"""Exceptions raised for invalid engine usage."""
from __future__ import annotations


class EventQueryError(Exception):
    """Base class for caller errors surfaced by the query engine."""


class InvalidQueryError(EventQueryError, ValueError):
    """Query parameters are structurally invalid."""


class MissingEndpointsError(InvalidQueryError):
    """Output that depends on a current window was requested without endpoints."""


class UnknownDimensionError(EventQueryError, KeyError):
    """A filter referenced a dimension the index does not maintain."""
