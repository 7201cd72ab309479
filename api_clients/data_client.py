"""
Device data API client for fetching raw event batches for the query engine.
"""
import logging
import os
from typing import Any, Optional, Sequence

import httpx

from event_query.config import EngineConfig
from event_query.engine import DataEngine
from models.event_models import DataRequest, DataResponse

# get data API environment variables
DATA_API_BASE_URL = os.getenv("EVENT_QUERY_DATA_API_BASE_URL")
DATA_API_TOKEN = os.getenv("EVENT_QUERY_DATA_API_TOKEN")

DEVICE_DATA_ENDPOINT = "/data/search"


class DataClient:
    """
    Client for the device data service.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        *,
        timeout: float | httpx.Timeout = httpx.Timeout(30.0, connect=10.0),
    ):
        self.base_url = base_url or DATA_API_BASE_URL
        self.token = token or DATA_API_TOKEN
        if not self.base_url or not self.token:
            raise ValueError("###### [data API] base URL/token not set; export EVENT_QUERY_DATA_API_BASE_URL/TOKEN")
        self.timeout = timeout
        self.headers = {
            "content-type": "application/json",
            "x-session-token": self.token,
        }

    def _url(self, endpoint: str) -> str:
        return f"{self.base_url.rstrip('/')}/{endpoint.lstrip('/')}"

    async def _make_request(self, method: str, endpoint: str, params=None, json_data=None):
        url = self._url(endpoint)
        try:
            async with httpx.AsyncClient(follow_redirects=True, timeout=self.timeout) as client:
                response = await client.request(
                    method=method.upper(),
                    url=url,
                    params=params,
                    json=json_data,
                    headers=self.headers,
                )
                logging.info(f"Request {url} completed with status: {response.status_code}")
                response.raise_for_status()
                return response.json() if response.text else {}
        except httpx.TimeoutException as e:
            logging.error(f"Timeout error calling data API {method} {url}: {e}")
            raise
        except httpx.HTTPStatusError as e:
            logging.error(f"HTTP error calling data API {method} {url}: {e}")
            logging.error(f"Response status: {e.response.status_code}")
            raise
        except httpx.RequestError as e:
            logging.error(f"Request error calling data API {method} {url}: {e}")
            raise

    async def get_device_data(
        self,
        user_id: str,
        *,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        types: Optional[Sequence[str]] = None,
    ) -> list[Any]:
        """
        Fetch raw device events for a user.

        Args:
            user_id: The user whose data is requested
            start_date: Optional inclusive ISO start date
            end_date: Optional exclusive ISO end date
            types: Optional event types to restrict the fetch to

        Returns:
            list: Raw events, unvalidated; the engine drops malformed entries on ingest
        """
        request_data = DataRequest(
            userId=user_id,
            startDate=start_date,
            endDate=end_date,
            types=list(types) if types else None,
        )
        logging.info(f"Fetching device data for user {user_id}")
        data = await self._make_request(
            "POST",
            DEVICE_DATA_ENDPOINT,
            json_data=request_data.model_dump(exclude_none=True),
        )
        return parse_device_data(data)

    def get_device_data_sync(
        self,
        user_id: str,
        *,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        types: Optional[Sequence[str]] = None,
        client: Optional[httpx.Client] = None,
    ) -> list[Any]:
        """Synchronous variant of :meth:`get_device_data` for scripts and the CLI."""
        request_data = DataRequest(
            userId=user_id,
            startDate=start_date,
            endDate=end_date,
            types=list(types) if types else None,
        )
        close_client = False
        if client is None:
            client = httpx.Client(follow_redirects=True, timeout=self.timeout)
            close_client = True
        try:
            response = client.post(
                self._url(DEVICE_DATA_ENDPOINT),
                json=request_data.model_dump(exclude_none=True),
                headers=self.headers,
            )
            response.raise_for_status()
            return parse_device_data(response.json() if response.text else {})
        finally:
            if close_client:
                client.close()


def parse_device_data(data: Any) -> list[Any]:
    """Unwrap the API envelope; a bare list is accepted as-is."""
    if isinstance(data, list):
        return data
    if not isinstance(data, dict):
        raise RuntimeError(f"Unexpected non-JSON response from {DEVICE_DATA_ENDPOINT}: {data!r}")
    response = DataResponse(**data)
    if response.code not in (None, 0, 200):
        logging.error(f"Device data fetch failed: code={response.code}, endpoint={DEVICE_DATA_ENDPOINT}")
        raise RuntimeError(f"Device data API error (code={response.code})")
    return list(response.data or [])


async def load_engine(
    user_id: str,
    *,
    client: Optional[DataClient] = None,
    config: Optional[EngineConfig] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
) -> DataEngine:
    """Fetch a user's device data and index it in a fresh engine."""
    data_client = client or DataClient()
    events = await data_client.get_device_data(user_id, start_date=start_date, end_date=end_date)
    return DataEngine(events, config=config)
