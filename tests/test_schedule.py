"""Tests for hourly grid compression and schedule helpers."""

from datetime import datetime

import pytest
from pydantic import ValidationError

from src.dtek.schedule import (
    HALF_HOUR_SPLITS,
    KYIV,
    compress_day,
    compress_preset,
    day_of_week,
    find_current_range,
    format_hour,
    hour_as_float,
    normalize_status,
    schedules_from_preset_data,
)

_SPLIT_BY_HALVES = {halves: code for code, halves in HALF_HOUR_SPLITS.items()}


def _as_tuples(ranges):
    return [(r.from_, r.to, r.status) for r in ranges]


def _status_at(ranges, t: float):
    for r in ranges:
        if r.from_ <= t < r.to:
            return r.status
    return None


def _to_grid(ranges) -> dict[str, str]:
    """Expand ranges back into an hourly grid of raw codes."""
    grid = {}
    for hour in range(1, 25):
        first = _status_at(ranges, hour - 1)
        second = _status_at(ranges, hour - 0.5)
        if first is None:
            continue
        grid[str(hour)] = first if first == second else _SPLIT_BY_HALVES[(first, second)]
    return grid


def _assert_merged(ranges):
    for previous, current in zip(ranges, ranges[1:]):
        assert not (previous.to == current.from_ and previous.status == current.status)


class TestCompressDay:
    def test_full_day_single_status(self):
        day = {str(h): "yes" for h in range(1, 25)}
        assert _as_tuples(compress_day(day)) == [(0.0, 24.0, "yes")]

    def test_adjacent_equal_hours_merge(self):
        day = {"1": "no", "2": "no", "3": "yes", "4": "maybe", "5": "maybe"}
        assert _as_tuples(compress_day(day)) == [
            (0.0, 2.0, "no"),
            (2.0, 3.0, "yes"),
            (3.0, 5.0, "maybe"),
        ]

    @pytest.mark.parametrize("code", sorted(HALF_HOUR_SPLITS))
    def test_split_code_yields_two_half_hours(self, code):
        first, second = HALF_HOUR_SPLITS[code]
        ranges = compress_day({"10": code})
        assert _as_tuples(ranges) == [(9.0, 9.5, first), (9.5, 10.0, second)]

    def test_split_half_merges_into_neighbours(self):
        day = {"1": "no", "2": "second", "3": "no"}
        # second = (yes, no): its second half joins hour 3
        assert _as_tuples(compress_day(day)) == [
            (0.0, 1.0, "no"),
            (1.0, 1.5, "yes"),
            (1.5, 3.0, "no"),
        ]

    def test_missing_hours_leave_gaps(self):
        ranges = compress_day({"1": "yes", "3": "yes"})
        assert _as_tuples(ranges) == [(0.0, 1.0, "yes"), (2.0, 3.0, "yes")]

    def test_unknown_code_counts_as_no(self):
        assert _as_tuples(compress_day({"1": "something"})) == [(0.0, 1.0, "no")]

    def test_empty_day(self):
        assert compress_day({}) == []


class TestInvariants:
    GRIDS = [
        {str(h): ("yes" if h % 5 else "first") for h in range(1, 25)},
        {str(h): ["yes", "no", "maybe", "mfirst", "msecond", "second"][h % 6] for h in range(1, 25)},
        {str(h): "msecond" for h in range(1, 25)},
        {"4": "no", "5": "no", "6": "first", "7": "yes", "20": "mfirst"},
    ]

    @pytest.mark.parametrize("grid", GRIDS)
    def test_no_adjacent_equal_ranges(self, grid):
        _assert_merged(compress_day(grid))

    @pytest.mark.parametrize("grid", GRIDS)
    def test_recompression_is_idempotent(self, grid):
        ranges = compress_day(grid)
        assert _as_tuples(compress_day(_to_grid(ranges))) == _as_tuples(ranges)

    @pytest.mark.parametrize("grid", GRIDS)
    def test_ranges_are_ordered_and_half_open(self, grid):
        ranges = compress_day(grid)
        for r in ranges:
            assert 0 <= r.from_ < r.to <= 24
        for previous, current in zip(ranges, ranges[1:]):
            assert previous.to <= current.from_

    def test_ranges_are_immutable(self):
        ranges = compress_day({"1": "no", "2": "no"})
        assert _as_tuples(ranges) == [(0.0, 2.0, "no")]
        with pytest.raises(ValidationError):
            ranges[0].to = 5.0


class TestPreset:
    def test_compress_preset_keeps_group_and_day_keys(self):
        data = {"GPV2.1": {"1": {"1": "no"}, "7": {"24": "maybe"}}}
        weekly = compress_preset(data)
        assert _as_tuples(weekly["GPV2.1"]["1"]) == [(0.0, 1.0, "no")]
        assert _as_tuples(weekly["GPV2.1"]["7"]) == [(23.0, 24.0, "maybe")]

    def test_none_means_no_schedules(self):
        assert schedules_from_preset_data(None) is None

    @pytest.mark.parametrize("data", [[], "x", {"GPV1.1": []}, {"GPV1.1": {"1": "yes"}}])
    def test_bad_shapes_raise(self, data):
        with pytest.raises(ValueError):
            schedules_from_preset_data(data)

    def test_serializes_with_from_key(self):
        ranges = compress_day({"1": "yes"})
        assert ranges[0].model_dump(by_alias=True) == {"from": 0.0, "to": 1.0, "status": "yes"}


class TestHelpers:
    def test_normalize_status(self):
        assert normalize_status("yes") == "yes"
        assert normalize_status("mfirst") == "maybe"
        assert normalize_status("msecond") == "maybe"
        assert normalize_status("first") == "no"
        assert normalize_status("second") == "no"
        assert normalize_status("") == "no"

    def test_find_current_range(self):
        ranges = compress_day({"1": "yes", "2": "no", "4": "maybe"})
        assert find_current_range(ranges, 0.0).status == "yes"
        assert find_current_range(ranges, 1.0).status == "no"
        assert find_current_range(ranges, 2.5) is None
        assert find_current_range(ranges, 3.99).status == "maybe"
        assert find_current_range(ranges, 4.0) is None

    def test_format_hour(self):
        assert format_hour(0) == "00:00"
        assert format_hour(9.5) == "09:30"
        assert format_hour(24) == "24:00"

    def test_day_and_hour_in_kyiv(self):
        # Sunday 2025-12-14 21:45 Kyiv
        moment = datetime(2025, 12, 14, 21, 45, tzinfo=KYIV)
        assert day_of_week(moment) == "7"
        assert hour_as_float(moment) == 21.75
