"""HTTP client for interacting with OSRM services."""

from __future__ import annotations

import logging
import time
from typing import Sequence

import httpx

from ...config import settings

# Public OSRM rejects table requests above this many coordinates.
DEFAULT_MAX_COORDINATES_PER_REQUEST = 100

logger = logging.getLogger(__name__)


class OSRMClient:
    def __init__(
        self,
        base_url: str | None = None,
        profile: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        max_coordinates_per_request: int = DEFAULT_MAX_COORDINATES_PER_REQUEST,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.osrm_base_url or "").rstrip("/")
        if not self.base_url:
            raise ValueError("OSRM base URL is not configured.")
        self.profile = profile or settings.osrm_profile
        self.timeout = timeout if timeout is not None else settings.osrm_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.osrm_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.osrm_backoff_seconds
        self.max_coordinates_per_request = max_coordinates_per_request
        self._transport = transport

    def _get_client(self) -> httpx.Client:
        # One client per call keeps the provider safe to share across request threads.
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout, connect=10.0),
            transport=self._transport,
        )

    def _get_json(self, url: str, params: dict) -> dict:
        client = self._get_client()
        try:
            attempt = 0
            while True:
                try:
                    response = client.get(url, params=params)
                    response.raise_for_status()
                    data = response.json()
                    if data.get("code") not in (None, "Ok"):
                        raise ValueError(f"OSRM request failed: {data.get('message', data.get('code'))}")
                    return data
                except httpx.HTTPStatusError as e:
                    if e.response.status_code == 414:
                        raise ValueError(
                            "OSRM request URL too large. "
                            f"Try reducing max_coordinates_per_request (current: {self.max_coordinates_per_request})"
                        ) from e
                    attempt += 1
                    if attempt > self.max_retries:
                        raise
                    time.sleep(self.backoff_seconds * attempt)
                except httpx.TimeoutException as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        logger.warning(f"OSRM request timed out after {self.max_retries} retries: {e}")
                        raise
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(f"OSRM request timeout, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries})")
                    time.sleep(wait_time)
                except (httpx.ConnectError, httpx.NetworkError) as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        raise ConnectionError(
                            f"Failed to connect to OSRM service at {self.base_url}: {e}"
                        ) from e
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(f"OSRM network error, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries}): {e}")
                    time.sleep(wait_time)
                except (httpx.HTTPError, ValueError):
                    attempt += 1
                    if attempt > self.max_retries:
                        raise
                    time.sleep(self.backoff_seconds * attempt)
        finally:
            client.close()

    def table(self, coordinates: Sequence[tuple[float, float]]) -> dict:
        """Get the duration (seconds) and distance (meters) matrix for (lat, lon) coordinates."""
        if len(coordinates) < 2:
            raise ValueError("At least two coordinates are required for OSRM table.")
        if len(coordinates) > self.max_coordinates_per_request:
            raise ValueError(
                f"OSRM table limited to {self.max_coordinates_per_request} coordinates, got {len(coordinates)}."
            )

        coordinate_str = ";".join(f"{lon},{lat}" for lat, lon in coordinates)
        url = f"{self.base_url}/table/v1/{self.profile}/{coordinate_str}"
        data = self._get_json(url, {"annotations": "duration,distance"})
        if "durations" not in data or "distances" not in data:
            raise ValueError("OSRM response missing durations/distances.")
        return data

    def route(self, coordinates: Sequence[tuple[float, float]]) -> dict:
        """Get route geometry between ordered (lat, lon) waypoints as an encoded polyline."""
        if len(coordinates) < 2:
            raise ValueError("At least two coordinates are required for OSRM route.")

        coordinate_str = ";".join(f"{lon},{lat}" for lat, lon in coordinates)
        params = {
            "overview": "full",
            "geometries": "polyline",
            "steps": "false",
        }
        url = f"{self.base_url}/route/v1/{self.profile}/{coordinate_str}"
        data = self._get_json(url, params)
        if not data.get("routes"):
            raise ValueError("OSRM route response contained no routes.")
        return data


def check_health(base_url: str | None = None) -> bool:
    """Check OSRM service health by making a minimal two-point table request."""
    base = base_url or settings.osrm_base_url
    if not base:
        return False
    try:
        test_coords = "13.388860,52.517037;13.385983,52.496891"
        url = f"{base.rstrip('/')}/table/v1/{settings.osrm_profile}/{test_coords}"
        response = httpx.get(url, params={"annotations": "duration"}, timeout=5.0)
        response.raise_for_status()
        data = response.json()
        return "durations" in data and isinstance(data.get("durations"), list)
    except (httpx.HTTPError, ValueError):
        return False
