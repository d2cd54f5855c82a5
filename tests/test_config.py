"""Tests for settings loading."""

from __future__ import annotations

import logging

import pytest

from quake_rank.config import Settings
from quake_rank.usgs_client import FEEDS


class TestFromEnv:
    def test_defaults(self):
        settings = Settings.from_env({})
        assert settings.feed_url == FEEDS["month"]
        assert settings.geocode_interval_seconds == 1.5
        assert settings.geocode_retry.max_attempts == 2
        assert settings.store_write_retry.max_attempts == 4
        assert settings.missing_magnitude == 0.0
        assert settings.enrich_on_ingest is False

    def test_overrides(self):
        settings = Settings.from_env({
            "QUAKE_RANK_GEOCODER_PROVIDER": "Google",
            "QUAKE_RANK_GEOCODER_API_KEY": "secret",
            "QUAKE_RANK_GEOCODE_RETRIES": "3",
            "QUAKE_RANK_ENRICH_ON_INGEST": "yes",
            "QUAKE_RANK_MISSING_MAGNITUDE": "exclude",
            "QUAKE_RANK_LOG_LEVEL": "debug",
            "QUAKE_RANK_STORE_PATH": "",
        })
        assert settings.geocoder_provider == "google"
        assert settings.geocoder_api_key == "secret"
        assert settings.geocode_retry.max_attempts == 4
        assert settings.enrich_on_ingest is True
        assert settings.missing_magnitude is None
        assert settings.log_level_value == logging.DEBUG
        assert settings.store_path == "quake_rank_store.json"

    def test_numeric_missing_magnitude(self):
        assert Settings.from_env({"QUAKE_RANK_MISSING_MAGNITUDE": "1.0"}).missing_magnitude == 1.0

    @pytest.mark.parametrize("env", [
        {"QUAKE_RANK_FEED_RETRIES": "many"},
        {"QUAKE_RANK_GEOCODE_INTERVAL_SECONDS": "-1"},
        {"QUAKE_RANK_GEOCODER_PROVIDER": "osm"},
        {"QUAKE_RANK_MISSING_MAGNITUDE": "zero"},
        {"QUAKE_RANK_STORE_WRITE_RETRIES": "-1"},
    ])
    def test_invalid(self, env):
        with pytest.raises(ValueError):
            Settings.from_env(env)


def test_feed_retry_backs_off_exponentially():
    policy = Settings(feed_retries=2, feed_retry_delay=1.0).feed_retry
    assert policy.max_attempts == 3
    assert [policy.delay_for(i) for i in range(2)] == [1.0, 2.0]


def test_unknown_log_level_falls_back_to_info():
    assert Settings(log_level="chatty").log_level_value == logging.INFO
