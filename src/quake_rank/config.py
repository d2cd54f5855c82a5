"""Runtime settings, read from ``QUAKE_RANK_*`` environment variables."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass

from quake_rank.retry import RetryPolicy
from quake_rank.usgs_client import FEEDS

ENV_PREFIX = "QUAKE_RANK_"

GEOCODER_PROVIDERS = ("bing", "google")


def _truthy(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    feed_url: str = FEEDS["month"]
    feed_timeout_seconds: float = 30.0
    feed_retries: int = 2
    feed_retry_delay: float = 2.0

    geocoder_provider: str = "bing"
    geocoder_api_key: str = ""
    geocoder_timeout_seconds: float = 10.0
    geocode_interval_seconds: float = 1.5
    geocode_retries: int = 1

    store_path: str = "quake_rank_store.json"
    store_write_retries: int = 3

    enrich_on_ingest: bool = False
    # None excludes events without a magnitude from the energy sum
    missing_magnitude: float | None = 0.0

    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.geocoder_provider not in GEOCODER_PROVIDERS:
            raise ValueError(
                f"Unknown geocoder provider '{self.geocoder_provider}'. "
                f"Choose from: {list(GEOCODER_PROVIDERS)}"
            )
        for name in ("feed_retries", "geocode_retries", "store_write_retries"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")
        if self.geocode_interval_seconds < 0:
            raise ValueError("geocode_interval_seconds must not be negative")

    @property
    def feed_retry(self) -> RetryPolicy:
        return RetryPolicy.with_retries(self.feed_retries, backoff="exponential", delay=self.feed_retry_delay)

    @property
    def geocode_retry(self) -> RetryPolicy:
        return RetryPolicy.with_retries(self.geocode_retries)

    @property
    def store_write_retry(self) -> RetryPolicy:
        return RetryPolicy.with_retries(self.store_write_retries)

    @property
    def log_level_value(self) -> int:
        level = logging.getLevelName(self.log_level.upper())
        return level if isinstance(level, int) else logging.INFO

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from the environment, falling back to defaults.

        Raises:
            ValueError: a variable is set to something that does not parse.
        """
        env = os.environ if environ is None else environ

        def get(name: str) -> str | None:
            value = env.get(ENV_PREFIX + name)
            return value if value not in (None, "") else None

        kwargs: dict = {}
        for name, convert in (
            ("FEED_URL", str),
            ("FEED_TIMEOUT_SECONDS", float),
            ("FEED_RETRIES", int),
            ("FEED_RETRY_DELAY", float),
            ("GEOCODER_PROVIDER", str.lower),
            ("GEOCODER_API_KEY", str),
            ("GEOCODER_TIMEOUT_SECONDS", float),
            ("GEOCODE_INTERVAL_SECONDS", float),
            ("GEOCODE_RETRIES", int),
            ("STORE_PATH", str),
            ("STORE_WRITE_RETRIES", int),
            ("ENRICH_ON_INGEST", _truthy),
            ("LOG_LEVEL", str),
        ):
            raw = get(name)
            if raw is None:
                continue
            try:
                kwargs[name.lower()] = convert(raw)
            except ValueError as exc:
                raise ValueError(f"Invalid {ENV_PREFIX}{name}={raw!r}") from exc

        raw = get("MISSING_MAGNITUDE")
        if raw is not None:
            if raw.lower() in ("exclude", "none"):
                kwargs["missing_magnitude"] = None
            else:
                try:
                    kwargs["missing_magnitude"] = float(raw)
                except ValueError as exc:
                    raise ValueError(f"Invalid {ENV_PREFIX}MISSING_MAGNITUDE={raw!r}") from exc

        return cls(**kwargs)
