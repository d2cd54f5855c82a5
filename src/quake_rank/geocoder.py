"""Reverse geocoding of earthquake coordinates to a country name.

Two provider adapters are available (Bing Maps and Google Geocoding). Both
turn a ``(latitude, longitude)`` pair into a request and a response into a
``GeocodeResult``; ``GeoEnricher`` adds retry and pacing on top and never lets
a lookup failure escape.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

import httpx

from quake_rank.models import Summary
from quake_rank.pacing import Pacer
from quake_rank.retry import RetryError, RetryPolicy

logger = logging.getLogger(__name__)


class GeocodeError(RuntimeError):
    """The provider answered with a non-success status."""


@dataclass(frozen=True)
class GeocodeResult:
    country: str | None


def _dicts(value: Any) -> list[dict]:
    """The dict entries of a JSON array; anything else is skipped."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


class BingGeocoder:
    """Bing Maps Locations API (``/REST/v1/Locations/{lat},{lon}``)."""

    name = "bing"
    base_url = "https://dev.virtualearth.net/REST/v1/Locations"

    def __init__(self, api_key: str):
        self.api_key = api_key

    def request(self, lat: float, lon: float) -> tuple[str, dict]:
        return f"{self.base_url}/{lat},{lon}", {"key": self.api_key}

    def parse(self, resp: httpx.Response) -> GeocodeResult:
        if not resp.is_success:
            raise GeocodeError(f"HTTP {resp.status_code}")
        data = resp.json()
        if not isinstance(data, dict) or data.get("statusCode") != 200:
            raise GeocodeError(f"statusCode {data.get('statusCode') if isinstance(data, dict) else None}")

        for resource_set in _dicts(data.get("resourceSets")):
            for resource in _dicts(resource_set.get("resources")):
                address = resource.get("address")
                if not isinstance(address, dict):
                    continue
                country = address.get("countryRegion")
                if isinstance(country, str) and country:
                    return GeocodeResult(country=country)
        return GeocodeResult(country=None)


class GoogleGeocoder:
    """Google Geocoding API, reverse lookup via ``latlng``."""

    name = "google"
    base_url = "https://maps.googleapis.com/maps/api/geocode/json"

    def __init__(self, api_key: str):
        self.api_key = api_key

    def request(self, lat: float, lon: float) -> tuple[str, dict]:
        return self.base_url, {"latlng": f"{lat},{lon}", "key": self.api_key}

    def parse(self, resp: httpx.Response) -> GeocodeResult:
        if not resp.is_success:
            raise GeocodeError(f"HTTP {resp.status_code}")
        data = resp.json()
        status = data.get("status") if isinstance(data, dict) else None
        if status == "ZERO_RESULTS":
            return GeocodeResult(country=None)
        if status != "OK":
            raise GeocodeError(f"status {status}")

        for result in _dicts(data.get("results")):
            for component in _dicts(result.get("address_components")):
                types = component.get("types")
                if isinstance(types, list) and "country" in types:
                    country = component.get("long_name")
                    if isinstance(country, str) and country:
                        return GeocodeResult(country=country)
        return GeocodeResult(country=None)


PROVIDERS = {
    "bing": BingGeocoder,
    "google": GoogleGeocoder,
}


def make_provider(name: str, api_key: str) -> BingGeocoder | GoogleGeocoder:
    cls = PROVIDERS.get(name)
    if cls is None:
        raise ValueError(f"Unknown geocoder provider '{name}'. Choose from: {list(PROVIDERS.keys())}")
    return cls(api_key)


class GeoEnricher:
    """Attach a country to summaries, one paced lookup at a time."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        provider: BingGeocoder | GoogleGeocoder,
        retry: RetryPolicy | None = None,
        pacer: Pacer | None = None,
        timeout: float = 10.0,
    ):
        self.client = client
        self.provider = provider
        self.retry = retry or RetryPolicy(max_attempts=2)
        self.pacer = pacer or Pacer(1.5)
        self.timeout = timeout

    async def _lookup_once(self, lat: float, lon: float) -> GeocodeResult:
        await self.pacer.wait()
        url, params = self.provider.request(lat, lon)
        resp = await self.client.get(url, params=params, timeout=self.timeout)
        return self.provider.parse(resp)

    async def lookup_country(self, lat: float, lon: float) -> str | None:
        """Country at the given point, or None if unknown or the lookup failed."""
        try:
            result = await self.retry.call(
                lambda: self._lookup_once(lat, lon),
                retry_on=(GeocodeError, httpx.RequestError, ValueError),
                label=f"geocode-{self.provider.name}",
            )
        except RetryError as exc:
            logger.warning("Geocoding (%s, %s) gave up: %s", lat, lon, exc.__cause__)
            return None
        return result.country

    async def enrich(self, summary: Summary) -> Summary:
        if summary.coordinates is None:
            return summary.with_country(None)
        country = await self.lookup_country(summary.coordinates.latitude, summary.coordinates.longitude)
        return summary.with_country(country)

    async def enrich_all(self, summaries: Iterable[Summary]) -> list[Summary]:
        """Enrich sequentially; summaries that already have a country pass through."""
        enriched: list[Summary] = []
        lookups = 0
        for summary in summaries:
            if summary.country is not None:
                enriched.append(summary)
                continue
            if summary.coordinates is not None:
                lookups += 1
            enriched.append(await self.enrich(summary))

        resolved = sum(1 for s in enriched if s.country is not None)
        logger.info(
            "Geocoded %d summaries, %d with a country", lookups, resolved,
            extra={"event_count": lookups},
        )
        return enriched
