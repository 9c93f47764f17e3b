"""Tests for the PostgreSQL query layer and observation sources."""

import json
from datetime import datetime, timezone

import asyncpg
import pytest
from unittest.mock import AsyncMock, Mock

from observation_insights.database import (
    DatabasePool,
    InMemoryObservationSource,
    PostgresObservationSource,
    QueryError,
    build_observation_query,
    row_to_record,
)
from observation_insights.models import FilterScope


def feedback_row(**overrides):
    row = {
        "id": 17,
        "teacher_id": "t1",
        "teacher_name": "Alice Walker",
        "department": "Mathematics",
        "observer_id": "o1",
        "observer_name": "Mr Bishop",
        "observation_date": datetime(2024, 9, 2, 9, 0, tzinfo=timezone.utc),
        "subject": "Maths",
        "subject_id": None,
        "key_stage": "KS3",
        "key_stage_id": None,
        "observation_type": "Formal",
        "observation_type_id": None,
        "overall_grade": "good",
        "overall_rating": None,
        "strengths": ["Questioning", "Pace"],
        "areas_for_development": None,
        "lesson_duration": 50,
        "planning_preparation": json.dumps({"objectives": 4, "resources": 2}),
        "teaching_delivery": None,
        "student_engagement": {"participation": 3},
        "classroom_management": "not json",
        "assessment_feedback": None,
    }
    row.update(overrides)
    return row


class TestBuildQuery:

    def test_unconstrained_scope(self):
        query, params = build_observation_query(FilterScope())

        assert "f.status = 'completed'" in query
        assert query.rstrip().endswith("ORDER BY f.observation_date ASC, f.id ASC")
        assert params == []

    def test_parameters_are_positional(self):
        scope = FilterScope.from_filters({
            "dateFrom": "2024-09-01",
            "dateTo": "2024-09-30",
            "teacherIds": ["t2", "t1"],
            "subjectIds": ["Maths"],
        })
        query, params = build_observation_query(scope)

        assert params[0] == scope.date_range.date_from
        assert params[1] == scope.date_range.date_to
        assert params[2] == ["t1", "t2"]
        assert params[3] == ["Maths"]
        assert "f.observation_date >= $1" in query
        assert "f.teacher_id::text = ANY($3::text[])" in query
        assert "f.lesson_subject = ANY($4::text[])" in query

    def test_values_never_inlined(self):
        scope = FilterScope(department_ids={"Maths'; DROP TABLE feedback; --"})
        query, params = build_observation_query(scope)

        assert "DROP TABLE" not in query
        assert params == [["Maths'; DROP TABLE feedback; --"]]


class TestRowToRecord:

    def test_maps_columns(self):
        record = row_to_record(feedback_row())

        assert record.id == "17"
        assert record.overall_grade == "Good"
        assert record.numeric_score == 3.0
        assert record.strengths == "Questioning; Pace"
        assert record.department == "Mathematics"

    def test_criteria_columns(self):
        record = row_to_record(feedback_row())

        assert record.criteria_scores == {
            "Planning & Preparation": 3.0,
            "Student Engagement": 3.0,
        }


class TestPostgresSource:

    @pytest.mark.asyncio
    async def test_fetch_observations(self):
        pool = Mock(spec=DatabasePool)
        pool.fetch = AsyncMock(return_value=[feedback_row(), feedback_row(id=18, observation_date=None)])

        records = await PostgresObservationSource(pool).fetch_observations(FilterScope())

        assert [r.id for r in records] == ["17"]
        pool.fetch.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_query_failure_raises_query_error(self):
        pool = Mock(spec=DatabasePool)
        pool.fetch = AsyncMock(side_effect=asyncpg.PostgresError("relation does not exist"))

        with pytest.raises(QueryError, match="Observation query failed"):
            await PostgresObservationSource(pool).fetch_observations(FilterScope())


class TestInMemorySource:

    @pytest.mark.asyncio
    async def test_filters_with_scope(self, school_records):
        source = InMemoryObservationSource(school_records)
        records = await source.fetch_observations(FilterScope(teacher_ids={"t2"}))
        assert {r.teacher_name for r in records} == {"Ben Carter"}

    def test_from_rows_skips_invalid(self):
        source = InMemoryObservationSource.from_rows([
            {"id": "a", "observation_date": "2024-09-02T09:00:00Z", "overall_grade": "Good"},
            {"id": "b"},
        ])
        assert [r.id for r in source.records] == ["a"]

    @pytest.mark.parametrize("wrap", [True, False])
    def test_from_json_file(self, tmp_path, wrap):
        rows = [{"id": "a", "observation_date": "2024-09-02", "lesson_subject": "Maths", "class_year": "KS3"}]
        path = tmp_path / "observations.json"
        path.write_text(json.dumps({"observations": rows} if wrap else rows))

        source = InMemoryObservationSource.from_json_file(path)

        assert source.records[0].subject == "Maths"
        assert source.records[0].key_stage == "KS3"

    def test_from_json_file_rejects_other_shapes(self, tmp_path):
        path = tmp_path / "observations.json"
        path.write_text(json.dumps({"observations": "nope"}))
        with pytest.raises(ValueError):
            InMemoryObservationSource.from_json_file(path)
