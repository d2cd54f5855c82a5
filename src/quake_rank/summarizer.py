"""Reduce raw feed events to summaries and select the ones not yet ingested."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone

from quake_rank.models import RawEvent, Summary

DATE_FORMAT = "%Y-%m-%d"


def date_string(epoch_millis: int | None) -> str | None:
    """UTC calendar date for an epoch-millis timestamp, or None."""
    if epoch_millis is None:
        return None
    try:
        return datetime.fromtimestamp(epoch_millis / 1000, tz=timezone.utc).strftime(DATE_FORMAT)
    except (OverflowError, OSError, ValueError):
        return None


def summarize(event: RawEvent) -> Summary:
    return Summary(
        id=event.id,
        coordinates=event.coordinates,
        properties=event.properties,
        date=date_string(event.properties.time),
    )


def take_new(summaries: Iterable[Summary], watermark: str | None) -> list[Summary]:
    """Return the leading run of summaries not older than the watermark.

    The feed is delivered newest-first, so scanning stops at the first summary
    dated strictly before the watermark. Anything after it is ignored even if
    the feed happens to be unsorted. Summaries without a date never stop the
    scan. With no watermark every summary is new.
    """
    if watermark is None:
        return list(summaries)

    new: list[Summary] = []
    for summary in summaries:
        if summary.date is not None and summary.date < watermark:
            break
        new.append(summary)
    return new


def group_by_date(
    summaries: Iterable[Summary],
) -> tuple[dict[str, dict[str, Summary]], str | None]:
    """Fold summaries into date partitions keyed by id.

    Returns the partitions and the most recent date among them. Summaries
    without a date are left out; a repeated id overwrites the earlier entry.
    """
    partitions: dict[str, dict[str, Summary]] = {}
    most_recent: str | None = None

    for summary in summaries:
        if summary.date is None:
            continue
        partitions.setdefault(summary.date, {})[summary.id] = summary
        if most_recent is None or summary.date > most_recent:
            most_recent = summary.date

    return partitions, most_recent
