"""Ingest and ranking pipelines.

Ingest: fetch -> summarize -> keep new -> (geocode) -> upsert per date ->
advance the watermark. Rank: load date partitions -> (geocode) -> group ->
score -> sort.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

import httpx

from quake_rank.config import Settings
from quake_rank.geocoder import GeoEnricher, make_provider
from quake_rank.models import RankedRegion, Summary
from quake_rank.pacing import Pacer
from quake_rank.regions import (
    COUNTRY,
    group_regions,
    normalize_region_type,
    rank_regions,
    score_regions,
)
from quake_rank.retry import RetryError, RetryPolicy
from quake_rank.store import StoreError, SummaryStore
from quake_rank.summarizer import DATE_FORMAT, group_by_date, summarize, take_new
from quake_rank.usgs_client import fetch_feed

logger = logging.getLogger(__name__)

DEFAULT_COUNT = 3
DEFAULT_DAYS = 30


def build_enricher(client: httpx.AsyncClient, settings: Settings) -> GeoEnricher:
    return GeoEnricher(
        client,
        make_provider(settings.geocoder_provider, settings.geocoder_api_key),
        retry=settings.geocode_retry,
        pacer=Pacer(settings.geocode_interval_seconds),
        timeout=settings.geocoder_timeout_seconds,
    )


async def _write_partition(
    store: SummaryStore,
    day: str,
    summaries: dict[str, Summary],
    retry: RetryPolicy,
) -> bool:
    """Upsert one date partition. Returns False once retries are exhausted."""
    payload = {sid: s.to_dict() for sid, s in summaries.items()}
    try:
        await retry.call(
            lambda: store.upsert_partition(day, payload),
            retry_on=(StoreError, OSError),
            label=f"store-write {day}",
        )
    except RetryError as exc:
        logger.error("Skipping %s: %s", day, exc.__cause__, extra={"date": day})
        return False
    return True


async def run_ingest(
    store: SummaryStore,
    settings: Settings | None = None,
    client: httpx.AsyncClient | None = None,
) -> dict:
    """Execute one ingest cycle and return a run report.

    The watermark only moves once every date partition has been written.

    Raises:
        FeedError: the feed could not be fetched; nothing was written.
    """
    settings = settings or Settings()
    run_id = str(uuid.uuid4())[:8]
    t0 = time.monotonic()

    watermark = await store.get_watermark()
    logger.info("[%s] Ingest starting, watermark %s", run_id, watermark, extra={"run_id": run_id})

    own_client = client is None
    client = client or httpx.AsyncClient()
    try:
        events = await fetch_feed(
            client, settings.feed_url, settings.feed_retry, timeout=settings.feed_timeout_seconds,
        )
        new = take_new((summarize(e) for e in events), watermark)
        partitions, most_recent = group_by_date(new)

        if partitions and settings.enrich_on_ingest:
            enricher = build_enricher(client, settings)
            partitions = {
                day: {s.id: s for s in await enricher.enrich_all(summaries.values())}
                for day, summaries in partitions.items()
            }
    finally:
        if own_client:
            await client.aclose()

    days = sorted(partitions, reverse=True)
    results = await asyncio.gather(*(
        _write_partition(store, day, partitions[day], settings.store_write_retry)
        for day in days
    ))
    failed = [day for day, ok in zip(days, results) if not ok]

    new_watermark = watermark
    if failed:
        logger.error(
            "[%s] %d date(s) failed to write, watermark stays at %s: %s",
            run_id, len(failed), watermark, failed, extra={"run_id": run_id},
        )
    elif most_recent is not None and (watermark is None or most_recent > watermark):
        try:
            await settings.store_write_retry.call(
                lambda: store.set_watermark(most_recent),
                retry_on=(StoreError, OSError),
                label="store-watermark",
            )
            new_watermark = most_recent
        except RetryError as exc:
            logger.error(
                "[%s] Could not advance watermark to %s: %s", run_id, most_recent, exc.__cause__,
                extra={"run_id": run_id},
            )

    duration = time.monotonic() - t0
    result = {
        "run_id": run_id,
        "fetched": len(events),
        "new": len(new),
        "dates": days,
        "failed_dates": failed,
        "watermark": new_watermark,
        "duration_s": round(duration, 2),
    }
    logger.info(
        "[%s] Ingest complete in %.1fs: %s", run_id, duration, result,
        extra={"run_id": run_id, "event_count": len(new), "duration_ms": int(duration * 1000)},
    )
    return result


def date_range(days: int, today: date | None = None) -> list[str]:
    """Date strings from today back ``days - 1`` days, newest first."""
    today = today or datetime.now(timezone.utc).date()
    return [(today - timedelta(days=i)).strftime(DATE_FORMAT) for i in range(days)]


async def fetch_summaries(store: SummaryStore, dates: list[str]) -> list[Summary]:
    """Load the given date partitions concurrently and flatten them."""
    partitions = await asyncio.gather(*(store.get_partition(d) for d in dates))
    summaries = []
    for partition in partitions:
        if not partition:
            continue
        summaries.extend(Summary.from_dict(d) for d in partition.values())
    return [s for s in summaries if s.date is not None]


async def _cache_countries(store: SummaryStore, before: list[Summary], after: list[Summary]) -> None:
    resolved: dict[str, dict[str, dict]] = {}
    for old, new in zip(before, after):
        if old.country is None and new.country is not None:
            resolved.setdefault(new.date, {})[new.id] = new.to_dict()
    for day, payload in resolved.items():
        try:
            await store.upsert_partition(day, payload)
        except (StoreError, OSError) as exc:
            logger.warning("Could not cache countries for %s: %s", day, exc, extra={"date": day})


async def get_most_dangerous(
    store: SummaryStore,
    count: int = DEFAULT_COUNT,
    days: int = DEFAULT_DAYS,
    region_type: str = COUNTRY,
    enricher: GeoEnricher | None = None,
    settings: Settings | None = None,
    today: date | None = None,
) -> list[RankedRegion]:
    """Rank regions by seismic energy over the last ``days`` days."""
    settings = settings or Settings()
    region_type = normalize_region_type(region_type)

    summaries = await fetch_summaries(store, date_range(days, today))
    logger.info(
        "Ranking %d summaries by %s over %d day(s)", len(summaries), region_type, days,
        extra={"event_count": len(summaries)},
    )

    if region_type == COUNTRY and any(s.country is None for s in summaries):
        if enricher is None:
            async with httpx.AsyncClient() as client:
                enriched = await build_enricher(client, settings).enrich_all(summaries)
        else:
            enriched = await enricher.enrich_all(summaries)
        await _cache_countries(store, summaries, enriched)
        summaries = enriched

    buckets = group_regions(region_type, summaries)
    scored = score_regions(region_type, buckets, settings.missing_magnitude)
    return rank_regions(scored, count)


def _positive_int(params: Mapping, name: str, default: int) -> int:
    raw = params.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"'{name}' must be an integer") from exc
    if value < 1:
        raise ValueError(f"'{name}' must be at least 1")
    return value


@dataclass(frozen=True)
class RankQuery:
    count: int = DEFAULT_COUNT
    days: int = DEFAULT_DAYS
    region_type: str = COUNTRY

    @classmethod
    def from_params(cls, params: Mapping) -> RankQuery:
        """Parse ``count``, ``days`` and ``region_type`` query parameters.

        Raises:
            ValueError: count or days is not a positive integer.
        """
        return cls(
            count=_positive_int(params, "count", DEFAULT_COUNT),
            days=_positive_int(params, "days", DEFAULT_DAYS),
            region_type=normalize_region_type(params.get("region_type") or COUNTRY),
        )
