"""API clients for upstream data services."""

from .data_client import DEVICE_DATA_ENDPOINT, DataClient, load_engine, parse_device_data

__all__ = [
    "DEVICE_DATA_ENDPOINT",
    "DataClient",
    "load_engine",
    "parse_device_data",
]
