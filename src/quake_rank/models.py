"""Earthquake data models and the feed decoding boundary.

Everything that reads the raw USGS GeoJSON goes through ``parse_feed`` /
``parse_feature``. Missing or ill-typed fields become ``None`` here so the
rest of the pipeline never has to probe nested dictionaries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any

logger = logging.getLogger(__name__)


class FeedDecodeError(ValueError):
    """Feed payload is not a GeoJSON FeatureCollection."""


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


def _as_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _clean_country(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None


@dataclass(frozen=True)
class Coordinates:
    longitude: float
    latitude: float

    @classmethod
    def from_geometry(cls, geometry: Any) -> Coordinates | None:
        if not isinstance(geometry, dict):
            return None
        coords = geometry.get("coordinates")
        if not isinstance(coords, (list, tuple)) or len(coords) < 2:
            return None
        lon, lat = _as_float(coords[0]), _as_float(coords[1])
        if lon is None or lat is None:
            return None
        return cls(longitude=lon, latitude=lat)

    def to_list(self) -> list[float]:
        return [self.longitude, self.latitude]


@dataclass(frozen=True)
class SummaryProperties:
    """The subset of feed properties a summary keeps."""

    mag: float | None = None
    place: str | None = None
    time: int | None = None
    updated: int | None = None
    tz: int | None = None
    mag_type: str | None = None
    event_type: str | None = None

    @classmethod
    def from_feed(cls, props: Any) -> SummaryProperties:
        if not isinstance(props, dict):
            return cls()
        return cls(
            mag=_as_float(props.get("mag")),
            place=_as_str(props.get("place")),
            time=_as_int(props.get("time")),
            updated=_as_int(props.get("updated")),
            tz=_as_int(props.get("tz")),
            mag_type=_as_str(props.get("magType")),
            event_type=_as_str(props.get("type")),
        )

    def to_dict(self) -> dict:
        return {
            "mag": self.mag,
            "place": self.place,
            "time": self.time,
            "updated": self.updated,
            "tz": self.tz,
            "magType": self.mag_type,
            "type": self.event_type,
        }


@dataclass(frozen=True)
class RawEvent:
    """A single feature from the USGS feed, after boundary validation."""

    id: str
    coordinates: Coordinates | None
    properties: SummaryProperties


def parse_feature(feature: Any) -> RawEvent | None:
    """Decode one GeoJSON feature. Returns None when it has no usable id."""
    if not isinstance(feature, dict):
        return None
    raw_id = feature.get("id")
    if isinstance(raw_id, bool) or not isinstance(raw_id, (str, int)) or raw_id == "":
        return None
    return RawEvent(
        id=str(raw_id),
        coordinates=Coordinates.from_geometry(feature.get("geometry")),
        properties=SummaryProperties.from_feed(feature.get("properties")),
    )


def parse_feed(payload: Any) -> list[RawEvent]:
    """Decode a FeatureCollection, preserving feed order.

    Raises:
        FeedDecodeError: payload is not an object with a ``features`` list.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("features"), list):
        raise FeedDecodeError("Feed payload is not a FeatureCollection")

    events: list[RawEvent] = []
    dropped = 0
    for feature in payload["features"]:
        event = parse_feature(feature)
        if event is None:
            dropped += 1
            continue
        events.append(event)

    if dropped:
        logger.warning("Dropped %d feed feature(s) without a usable id", dropped)
    return events


@dataclass(frozen=True)
class Summary:
    """Compact, durable record of one earthquake event."""

    id: str
    coordinates: Coordinates | None
    properties: SummaryProperties
    date: str | None
    country: str | None = None

    def with_country(self, country: str | None) -> Summary:
        return replace(self, country=_clean_country(country))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "coordinates": self.coordinates.to_list() if self.coordinates else None,
            "properties": self.properties.to_dict(),
            "date": self.date,
            "country": self.country,
        }

    @classmethod
    def from_dict(cls, d: dict) -> Summary:
        # Stored summaries may carry the country inside properties (older layout)
        props = d.get("properties") or {}
        country = d.get("country")
        if country is None and isinstance(props, dict):
            country = props.get("country")
        return cls(
            id=str(d["id"]),
            coordinates=Coordinates.from_geometry({"coordinates": d.get("coordinates")})
            or Coordinates.from_geometry(d.get("geometry")),
            properties=SummaryProperties.from_feed(props),
            date=_as_str(d.get("date")),
            country=_clean_country(country),
        )


@dataclass(frozen=True)
class RankedRegion:
    """One entry of the danger ranking, as returned to callers."""

    name: str
    earthquake_count: int
    total_magnitude: float

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "earthquake_count": self.earthquake_count,
            "total_magnitude": self.total_magnitude,
        }
