"""HTTP client for the USGS earthquake summary feed."""

from __future__ import annotations

import logging

import httpx

from quake_rank.models import RawEvent, parse_feed
from quake_rank.retry import RetryError, RetryPolicy

logger = logging.getLogger(__name__)

BASE_URL = "https://earthquake.usgs.gov/earthquakes/feed/v1.0/summary"

FEEDS = {
    "hour": f"{BASE_URL}/all_hour.geojson",
    "day": f"{BASE_URL}/all_day.geojson",
    "week": f"{BASE_URL}/all_week.geojson",
    "month": f"{BASE_URL}/all_month.geojson",
}


class FeedError(RuntimeError):
    """The feed could not be fetched or decoded."""


async def fetch_feed(
    client: httpx.AsyncClient,
    url: str = FEEDS["month"],
    retry: RetryPolicy | None = None,
    timeout: float = 30.0,
) -> list[RawEvent]:
    """Fetch and decode the feed, newest event first as USGS delivers it.

    Raises:
        FeedError: every attempt failed, or the body is not a FeatureCollection.
    """
    retry = retry or RetryPolicy()

    async def _get() -> dict:
        resp = await client.get(url, timeout=timeout)
        resp.raise_for_status()
        return resp.json()

    try:
        payload = await retry.call(
            _get,
            retry_on=(httpx.HTTPStatusError, httpx.RequestError, ValueError),
            label="usgs-feed",
        )
    except RetryError as exc:
        raise FeedError(f"Failed to fetch feed from {url}") from exc

    try:
        events = parse_feed(payload)
    except ValueError as exc:
        raise FeedError(f"Malformed feed from {url}: {exc}") from exc

    logger.info("Fetched %d event(s) from %s", len(events), url, extra={"event_count": len(events)})
    return events
