"""Region grouping, seismic energy scoring and ranking.

Regions are either UTC offsets (the feed's ``tz`` field, in minutes) or
countries resolved by the geocoder. A region's danger score is the magnitude
equivalent of the total energy released in it:

    score = log10(sum(10 ** mag))

Magnitudes are logarithmic, so adding them directly would rank a swarm of
small tremors above a single large earthquake.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass

from quake_rank.models import RankedRegion, Summary

TIMEZONE = "timezone"
COUNTRY = "country"
REGION_TYPES = (TIMEZONE, COUNTRY)


def normalize_region_type(region_type: str | None) -> str:
    """Map a requested region type to a supported one. Unknown -> country."""
    return TIMEZONE if region_type == TIMEZONE else COUNTRY


def region_key(region_type: str, summary: Summary) -> str | None:
    if region_type == TIMEZONE:
        tz = summary.properties.tz
        return "" if tz is None else str(tz)
    return summary.country


def group_regions(region_type: str, summaries: Iterable[Summary]) -> dict[str, list[Summary]]:
    """Bucket summaries by region, preserving input order within a bucket.

    Grouping by country expects summaries to be enriched already; those
    without a country are left out. Summaries without a date are skipped.
    """
    region_type = normalize_region_type(region_type)
    buckets: dict[str, list[Summary]] = {}
    for summary in summaries:
        if summary.date is None:
            continue
        key = region_key(region_type, summary)
        if key is None:
            continue
        buckets.setdefault(key, []).append(summary)
    return buckets


@dataclass(frozen=True)
class RegionScore:
    count: int
    energy: float


def energy(summaries: Iterable[Summary], missing_magnitude: float | None = 0.0) -> float:
    """Magnitude equivalent of the summed energy, rounded to 2 places.

    Events without a magnitude count as ``missing_magnitude``, or are left out
    when it is None. Returns 0.0 when nothing contributes.
    """
    terms = []
    for summary in summaries:
        mag = summary.properties.mag
        if mag is None:
            if missing_magnitude is None:
                continue
            mag = missing_magnitude
        terms.append(10.0 ** mag)

    total = math.fsum(terms)
    if total <= 0:
        return 0.0
    return round(math.log10(total), 2)


def score_bucket(summaries: list[Summary], missing_magnitude: float | None = 0.0) -> RegionScore:
    return RegionScore(count=len(summaries), energy=energy(summaries, missing_magnitude))


def score_regions(
    region_type: str,
    buckets: dict[str, list[Summary]],
    missing_magnitude: float | None = 0.0,
) -> list[RankedRegion]:
    """Score every bucket; output follows bucket order, not score order."""
    regions = []
    for key, summaries in buckets.items():
        score = score_bucket(summaries, missing_magnitude)
        regions.append(RankedRegion(
            name=f"{region_type} {key}",
            earthquake_count=score.count,
            total_magnitude=score.energy,
        ))
    return regions


def rank_regions(regions: Iterable[RankedRegion], count: int) -> list[RankedRegion]:
    """Highest score first, truncated to ``count``. Ties keep input order."""
    ranked = sorted(regions, key=lambda r: r.total_magnitude, reverse=True)
    return ranked[:max(count, 0)]
