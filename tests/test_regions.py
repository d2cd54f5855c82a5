"""Tests for region grouping, energy scoring and ranking."""

from __future__ import annotations

import math

import pytest

from quake_rank.models import RankedRegion, Summary, SummaryProperties
from quake_rank.regions import (
    energy,
    group_regions,
    normalize_region_type,
    rank_regions,
    score_regions,
)


def _summary(sid, mag=1.0, tz=None, country=None, day="2024-01-01"):
    return Summary(
        id=sid, coordinates=None,
        properties=SummaryProperties(mag=mag, tz=tz),
        date=day, country=country,
    )


class TestNormalizeRegionType:
    def test_known_types(self):
        assert normalize_region_type("timezone") == "timezone"
        assert normalize_region_type("country") == "country"

    def test_unknown_falls_back_to_country(self):
        assert normalize_region_type("continent") == "country"
        assert normalize_region_type(None) == "country"


class TestGroupRegions:
    def test_by_timezone(self):
        summaries = [_summary("a", tz=-480), _summary("b", tz=60), _summary("c", tz=-480)]
        buckets = group_regions("timezone", summaries)
        assert set(buckets) == {"-480", "60"}
        assert [s.id for s in buckets["-480"]] == ["a", "c"]

    def test_missing_timezone_keeps_empty_key(self):
        buckets = group_regions("timezone", [_summary("a", tz=None)])
        assert [s.id for s in buckets[""]] == ["a"]

    def test_by_country_omits_unresolved(self):
        summaries = [
            _summary("a", country="Japan"),
            _summary("b", country=None),
            _summary("c", country="Chile"),
            _summary("d", country="Japan"),
        ]
        buckets = group_regions("country", summaries)
        assert set(buckets) == {"Japan", "Chile"}
        assert all(s.id != "b" for bucket in buckets.values() for s in bucket)

    def test_unknown_type_groups_by_country(self):
        summaries = [_summary("a", tz=60, country="Fiji"), _summary("b", tz=60)]
        assert list(group_regions("planet", summaries)) == ["Fiji"]

    def test_undated_summaries_are_skipped(self):
        summaries = [_summary("a", tz=60, day=None), _summary("b", tz=60)]
        assert [s.id for s in group_regions("timezone", summaries)["60"]] == ["b"]

    def test_empty(self):
        assert group_regions("country", []) == {}


class TestEnergy:
    def test_log_of_summed_energy(self):
        summaries = [_summary("a", mag=5.0), _summary("b", mag=6.0)]
        assert energy(summaries) == round(math.log10(10 ** 5 + 10 ** 6), 2) == 6.04

    def test_single_event_keeps_its_magnitude(self):
        assert energy([_summary("a", mag=4.37)]) == 4.37

    def test_many_small_do_not_outweigh_one_large(self):
        small = [_summary(str(i), mag=3.0) for i in range(50)]
        assert energy(small) < energy([_summary("big", mag=6.0)])

    def test_missing_magnitude_counts_as_zero(self):
        summaries = [_summary("a", mag=None), _summary("b", mag=None)]
        assert energy(summaries) == round(math.log10(2), 2)

    def test_missing_magnitude_can_be_excluded(self):
        summaries = [_summary("a", mag=None), _summary("b", mag=2.0)]
        assert energy(summaries, missing_magnitude=None) == 2.0
        assert energy([_summary("a", mag=None)], missing_magnitude=None) == 0.0

    def test_negative_magnitudes(self):
        assert energy([_summary("a", mag=-1.0)]) == -1.0

    def test_empty_bucket_does_not_crash(self):
        assert energy([]) == 0.0


class TestScoreRegions:
    def test_names_and_counts(self):
        buckets = {
            "-480": [_summary("a", mag=5.0), _summary("b", mag=6.0)],
            "60": [_summary("c", mag=4.0)],
        }
        scored = score_regions("timezone", buckets)
        assert scored == [
            RankedRegion(name="timezone -480", earthquake_count=2, total_magnitude=6.04),
            RankedRegion(name="timezone 60", earthquake_count=1, total_magnitude=4.0),
        ]

    def test_empty_bucket(self):
        assert score_regions("country", {"Nowhere": []}) == [
            RankedRegion(name="country Nowhere", earthquake_count=0, total_magnitude=0.0),
        ]


def _region(name, score):
    return RankedRegion(name=name, earthquake_count=1, total_magnitude=score)


class TestRankRegions:
    def test_sorted_and_truncated(self):
        regions = [_region("a", 3.0), _region("b", 5.5), _region("c", 4.1), _region("d", 1.0)]
        ranked = rank_regions(regions, 2)
        assert [r.name for r in ranked] == ["b", "c"]

    @pytest.mark.parametrize("count", [1, 3, 4, 10])
    def test_length_and_order(self, count):
        regions = [_region("a", 3.0), _region("b", 5.5), _region("c", 4.1), _region("d", 1.0)]
        ranked = rank_regions(regions, count)
        assert len(ranked) == min(count, len(regions))
        scores = [r.total_magnitude for r in ranked]
        assert scores == sorted(scores, reverse=True)

    def test_ties_keep_input_order(self):
        regions = [_region("x", 2.0), _region("y", 3.0), _region("z", 2.0)]
        assert [r.name for r in rank_regions(regions, 3)] == ["y", "x", "z"]

    def test_empty(self):
        assert rank_regions([], 3) == []


def test_timezone_ranking_scenario():
    summaries = [
        _summary("a", mag=5.0, tz=-480),
        _summary("b", mag=6.0, tz=-480),
        _summary("c", mag=4.0, tz=60),
    ]
    ranked = rank_regions(score_regions("timezone", group_regions("timezone", summaries)), 1)
    assert ranked == [RankedRegion(name="timezone -480", earthquake_count=2, total_magnitude=6.04)]
