"""Tests for filter scope construction and matching."""

from datetime import date, datetime, timedelta, timezone

import pytest

from observation_insights.models import DateRange, FilterScope, InvalidScopeError


class TestFromFilters:

    def test_camel_case_filters(self):
        scope = FilterScope.from_filters({
            "dateFrom": "2024-09-01",
            "dateTo": "2024-09-30",
            "subjectIds": ["maths", "english"],
            "keyStageIds": ["ks3"],
        })

        assert scope.date_range.date_from == datetime(2024, 9, 1, tzinfo=timezone.utc)
        assert scope.date_range.date_to.date() == date(2024, 9, 30)
        assert scope.subject_ids == {"maths", "english"}
        assert scope.key_stage_ids == {"ks3"}
        assert scope.teacher_ids == frozenset()

    def test_snake_case_filters(self):
        scope = FilterScope.from_filters({"teacher_ids": ["t1"], "department_ids": "Mathematics"})
        assert scope.teacher_ids == {"t1"}
        assert scope.department_ids == {"Mathematics"}
        assert scope.date_range is None

    def test_empty_filters_are_unconstrained(self):
        assert FilterScope.from_filters(None).is_unconstrained
        assert FilterScope.from_filters({"subjectIds": [], "dateFrom": ""}).is_unconstrained

    def test_start_after_end_is_rejected(self):
        with pytest.raises(InvalidScopeError, match="after its end"):
            FilterScope.from_filters({"dateFrom": "2024-09-10", "dateTo": "2024-09-01"})

    def test_missing_bound_is_rejected(self):
        with pytest.raises(InvalidScopeError):
            FilterScope.from_filters({"dateFrom": "2024-09-10"})

    def test_unparseable_date_is_rejected(self):
        with pytest.raises(InvalidScopeError):
            FilterScope.from_filters({"dateFrom": "not a date", "dateTo": "2024-09-01"})

    def test_same_day_range_covers_whole_day(self):
        scope = FilterScope.from_filters({"dateFrom": "2024-09-02", "dateTo": "2024-09-02"})
        assert scope.date_range.contains(datetime(2024, 9, 2, 15, 0, tzinfo=timezone.utc))


class TestDateRange:

    def test_naive_datetimes_become_utc(self):
        date_range = DateRange(date_from=datetime(2024, 1, 1), date_to=datetime(2024, 1, 2))
        assert date_range.date_from.tzinfo == timezone.utc

    def test_inclusive_bounds(self):
        date_range = DateRange(date_from=date(2024, 1, 1), date_to=date(2024, 1, 31))
        assert date_range.contains(datetime(2024, 1, 1, tzinfo=timezone.utc))
        assert date_range.contains(datetime(2024, 1, 31, 23, 0, tzinfo=timezone.utc))
        assert not date_range.contains(datetime(2024, 2, 1, tzinfo=timezone.utc))


class TestPreviousPeriod:

    def test_no_date_range(self):
        assert FilterScope().previous_period() is None

    def test_equal_length_window_before(self):
        scope = FilterScope.from_filters({
            "dateFrom": "2024-09-01T00:00:00+00:00",
            "dateTo": "2024-09-30T00:00:00+00:00",
            "subjectIds": ["maths"],
        })
        previous = scope.previous_period()

        assert previous.date_range.date_to == scope.date_range.date_from - timedelta(microseconds=1)
        assert previous.date_range.length == scope.date_range.length
        assert previous.subject_ids == scope.subject_ids


class TestMatches:

    def test_date_range(self, make_record):
        scope = FilterScope.from_filters({"dateFrom": "2024-09-03", "dateTo": "2024-09-05"})
        assert not scope.matches(make_record("Good", day=0))
        assert scope.matches(make_record("Good", day=1))

    def test_matches_by_id_or_label(self, make_record):
        by_label = FilterScope(subject_ids={"Maths"})
        by_id = FilterScope(subject_ids={"sub-1"})

        assert by_label.matches(make_record("Good"))
        assert by_id.matches(make_record("Good", subject_id="sub-1"))
        assert not by_id.matches(make_record("Good"))

    def test_teacher_and_department(self, make_record):
        scope = FilterScope(teacher_ids={"t2"}, department_ids={"English"})
        assert not scope.matches(make_record("Good"))
        assert scope.matches(make_record("Good", teacher_id="t2", department="English"))

    def test_unconstrained_matches_everything(self, make_record):
        assert FilterScope().matches(make_record(None, subject=None))


def test_scope_is_immutable():
    scope = FilterScope(subject_ids={"Maths"})
    narrowed = scope.with_teacher_ids(["t1"])

    assert scope.teacher_ids == frozenset()
    assert narrowed.teacher_ids == {"t1"}
    with pytest.raises(Exception):
        scope.subject_ids = frozenset()


def test_describe_is_json_friendly():
    scope = FilterScope.from_filters({"dateFrom": "2024-09-01", "dateTo": "2024-09-30", "teacherIds": ["b", "a"]})
    described = scope.describe()

    assert described["date_range"]["from"].startswith("2024-09-01")
    assert described["teacher_ids"] == ["a", "b"]
    assert described["subject_ids"] == []
