"""Nominatim geocoding client with retry and a last-resort fallback coordinate."""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Sequence

import httpx

from ...config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class GeocodeResult:
    latitude: float
    longitude: float
    display_name: str
    fallback: bool = False


class NominatimGeocoder:
    def __init__(
        self,
        base_url: str | None = None,
        user_agent: str | None = None,
        max_attempts: int | None = None,
        backoff_seconds: float | None = None,
        request_delay_seconds: float | None = None,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.base_url = (base_url or settings.nominatim_base_url).rstrip("/")
        self.user_agent = user_agent or settings.geocode_user_agent
        self.max_attempts = max_attempts if max_attempts is not None else settings.geocode_max_attempts
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.geocode_backoff_seconds
        self.request_delay_seconds = (
            request_delay_seconds if request_delay_seconds is not None else settings.geocode_request_delay_seconds
        )
        self.timeout = timeout
        self._transport = transport
        self._rng = rng or random.Random()

    def _get_client(self) -> httpx.Client:
        return httpx.Client(
            timeout=self.timeout,
            transport=self._transport,
            headers={"User-Agent": self.user_agent, "Accept-Language": "en"},
        )

    def geocode(self, address: str) -> GeocodeResult:
        """Resolve ``address``, retrying with a linearly growing delay.

        Raises the last error once every attempt has failed.
        """
        if not address or not address.strip():
            raise ValueError("Address must not be empty.")

        params = {"format": "json", "q": address, "limit": 1}
        client = self._get_client()
        try:
            attempt = 0
            while True:
                attempt += 1
                if attempt > 1:
                    time.sleep(self.backoff_seconds * attempt)
                try:
                    response = client.get(f"{self.base_url}/search", params=params)
                    response.raise_for_status()
                    data = response.json()
                    if not data:
                        raise ValueError(f"No results found for: {address}")
                    first = data[0]
                    return GeocodeResult(
                        latitude=float(first["lat"]),
                        longitude=float(first["lon"]),
                        display_name=first.get("display_name", address),
                    )
                except (httpx.HTTPError, ValueError, KeyError) as e:
                    logger.debug(f"Geocoding attempt {attempt}/{self.max_attempts} failed for '{address}': {e}")
                    if attempt >= self.max_attempts:
                        raise
        finally:
            client.close()

    def fallback(self, address: str) -> GeocodeResult:
        """Jittered default coordinate so unresolved riders stay distinguishable on a map."""
        jitter = settings.geocode_fallback_jitter
        return GeocodeResult(
            latitude=settings.geocode_fallback_latitude + self._rng.random() * jitter,
            longitude=settings.geocode_fallback_longitude + self._rng.random() * jitter,
            display_name=address,
            fallback=True,
        )

    def geocode_or_fallback(self, address: str) -> GeocodeResult:
        try:
            return self.geocode(address)
        except (httpx.HTTPError, ValueError, KeyError) as e:
            logger.warning(f"Using fallback coordinates for '{address}': {e}")
            return self.fallback(address)

    def geocode_many(self, addresses: Sequence[str]) -> list[GeocodeResult]:
        """Geocode sequentially, pausing between requests to respect rate limits."""
        results: list[GeocodeResult] = []
        for index, address in enumerate(addresses):
            if index and self.request_delay_seconds:
                time.sleep(self.request_delay_seconds)
            results.append(self.geocode_or_fallback(address))
        return results
