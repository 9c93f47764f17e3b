"""Tests for trend analysis."""

import pytest

from observation_insights.analytics.trends import (
    compare_halves,
    compare_periods,
    compare_recent_scores,
    compare_recent_window,
    moving_average,
    ordered_scores,
)
from observation_insights.models import TrendDirection


class TestCompareHalves:

    def test_too_few_points(self):
        assert compare_halves([1, 2, 3, 4, 4]) is None

    def test_increasing_series_is_up(self):
        result = compare_halves([1, 1.5, 2, 3, 3.5, 4])
        assert result.direction == TrendDirection.UP
        assert result.difference == pytest.approx(3.5 - 1.5)

    def test_symmetry(self):
        series = [1, 1.5, 2, 2.5, 3, 3.5, 4]
        forward = compare_halves(series)
        backward = compare_halves(list(reversed(series)))

        assert forward.direction == TrendDirection.UP
        assert backward.direction == TrendDirection.DOWN

    def test_small_change_is_stable(self):
        result = compare_halves([3, 3, 3, 3.2, 3.2, 3.2])
        assert result.direction == TrendDirection.STABLE

    def test_threshold_is_exclusive(self):
        # second half exceeds the first by exactly 0.5
        result = compare_halves([2, 2, 2, 2.5, 2.5, 2.5], threshold=0.5)
        assert result.direction == TrendDirection.STABLE


class TestRecentWindow:

    def test_fewer_than_two_windows_is_stable(self):
        result = compare_recent_window([1, 2, 3, 4] * 3)
        assert result.direction == TrendDirection.STABLE
        assert result.percentage == 0

    def test_up(self):
        result = compare_recent_window([2.0] * 7 + [3.0] * 7)
        assert result.direction == TrendDirection.UP
        assert result.percentage == pytest.approx(50.0)
        assert result.is_improving

    def test_down(self):
        result = compare_recent_window([3.0] * 7 + [2.95] * 7)
        assert result.direction == TrendDirection.STABLE
        result = compare_recent_window([3.0] * 7 + [2.9] * 7)
        assert result.direction == TrendDirection.DOWN
        assert result.percentage < -2

    def test_uses_only_last_fourteen(self):
        result = compare_recent_window([1.0] * 5 + [3.0] * 14)
        assert result.direction == TrendDirection.STABLE
        assert result.previous_average == 3.0

    def test_missing_values_skipped(self):
        result = compare_recent_window([2.0, None] * 7 + [3.0] * 7)
        assert result.previous_average == 2.0
        assert result.direction == TrendDirection.UP


class TestMovingAverage:

    def test_constant_series(self):
        result = moving_average([3.0] * 10)
        assert result[:6] == [None] * 6
        assert result[6:] == [3.0] * 4

    def test_trailing_window(self):
        result = moving_average([1, 2, 3, 4, 5, 6, 7, 8])
        assert result[6] == pytest.approx(4.0)
        assert result[7] == pytest.approx(5.0)

    def test_gap_in_window(self):
        result = moving_average([3.0, None, 3.0, 3.0, 3.0, 3.0, 3.0, 3.0])
        assert result[6] is None
        assert result[7] is None

    def test_empty(self):
        assert moving_average([]) == []


class TestRecentScores:

    def test_no_previous_scores(self):
        assert compare_recent_scores([3, 3, 3]) == (TrendDirection.STABLE, None)
        assert compare_recent_scores([]) == (TrendDirection.STABLE, None)

    def test_down(self):
        direction, previous = compare_recent_scores([4, 4, 4, 2, 2, 2])
        assert direction == TrendDirection.DOWN
        assert previous == 4

    def test_partial_previous_window(self):
        direction, previous = compare_recent_scores([2, 3, 3, 3])
        assert previous == 2
        assert direction == TrendDirection.UP


def test_ordered_scores_sorts_and_filters(make_record):
    records = [make_record("Good", day=3), make_record(None, day=1), make_record("Inadequate", day=0)]
    assert ordered_scores(records) == [1.0, 3.0]


class TestComparePeriods:

    def test_absent_previous_stays_absent(self):
        result = compare_periods(3.0, None)
        assert result.current_period == 3.0
        assert result.previous_period is None
        assert result.change is None

    def test_change(self):
        result = compare_periods(3.0, 2.0)
        assert result.change == 1.0
        assert result.change_percentage == pytest.approx(50.0)
