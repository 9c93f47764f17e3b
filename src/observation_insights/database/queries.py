"""
PostgreSQL data access for completed observations.

Builds a single parameterised query per scope against public.feedback joined
to the teacher, subject, key stage and observation type lookups, and maps the
rows onto ObservationRecord.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Tuple

import asyncpg
from pydantic import ValidationError

from ..models.observation import ObservationRecord
from ..models.scope import FilterScope
from .connection import DatabasePool, get_database_pool
from .sources import ObservationSource


logger = logging.getLogger(__name__)


# Column holding each criterion's sub-scores (jsonb) -> display name
CRITERIA_COLUMNS = {
    "planning_preparation": "Planning & Preparation",
    "teaching_delivery": "Teaching & Delivery",
    "student_engagement": "Student Engagement",
    "classroom_management": "Classroom Management",
    "assessment_feedback": "Assessment & Feedback",
}

BASE_QUERY = """
SELECT
    f.id,
    f.teacher_id,
    t.name AS teacher_name,
    t.department,
    f.observer_id,
    o.name AS observer_name,
    f.observation_date,
    COALESCE(s.name, f.lesson_subject) AS subject,
    f.subject_id,
    COALESCE(ks.name, f.class_year) AS key_stage,
    f.key_stage_id,
    ot.name AS observation_type,
    f.observation_type_id,
    f.overall_grade,
    f.overall_rating,
    f.strengths,
    f.areas_for_development,
    f.lesson_duration,
    f.planning_preparation,
    f.teaching_delivery,
    f.student_engagement,
    f.classroom_management,
    f.assessment_feedback
FROM public.feedback f
LEFT JOIN public.teachers t ON t.id = f.teacher_id
LEFT JOIN public.teachers o ON o.id = f.observer_id
LEFT JOIN public.subjects s ON s.id = f.subject_id
LEFT JOIN public.key_stages ks ON ks.id = f.key_stage_id
LEFT JOIN public.observation_types ot ON ot.id = f.observation_type_id
"""


class QueryError(Exception):
    """Raised when the observation query fails."""
    pass


def build_observation_query(scope: FilterScope) -> Tuple[str, List[Any]]:
    """
    SQL and positional parameters for a scope.

    Id filters match either the lookup id or the stored label, mirroring
    FilterScope.matches.
    """
    where_conditions = ["f.status = 'completed'"]
    params: List[Any] = []

    def next_param(value: Any) -> str:
        params.append(value)
        return f"${len(params)}"

    if scope.date_range:
        where_conditions.append(f"f.observation_date >= {next_param(scope.date_range.date_from)}")
        where_conditions.append(f"f.observation_date <= {next_param(scope.date_range.date_to)}")

    if scope.teacher_ids:
        where_conditions.append(f"f.teacher_id::text = ANY({next_param(sorted(scope.teacher_ids))}::text[])")

    if scope.subject_ids:
        placeholder = next_param(sorted(scope.subject_ids))
        where_conditions.append(
            f"(f.subject_id::text = ANY({placeholder}::text[]) OR f.lesson_subject = ANY({placeholder}::text[]))"
        )

    if scope.key_stage_ids:
        placeholder = next_param(sorted(scope.key_stage_ids))
        where_conditions.append(
            f"(f.key_stage_id::text = ANY({placeholder}::text[]) OR f.class_year = ANY({placeholder}::text[]))"
        )

    if scope.observation_type_ids:
        placeholder = next_param(sorted(scope.observation_type_ids))
        where_conditions.append(
            f"(f.observation_type_id::text = ANY({placeholder}::text[]) OR ot.name = ANY({placeholder}::text[]))"
        )

    if scope.department_ids:
        where_conditions.append(f"t.department = ANY({next_param(sorted(scope.department_ids))}::text[])")

    query = f"{BASE_QUERY}WHERE {' AND '.join(where_conditions)}\nORDER BY f.observation_date ASC, f.id ASC"
    return query, params


def _parse_json_column(value: Any, row_id: Any, column: str) -> Optional[Dict[str, Any]]:
    if value is None:
        return None
    if isinstance(value, dict):
        return value
    try:
        parsed = json.loads(value)
    except (json.JSONDecodeError, TypeError):
        logger.warning(f"Could not parse {column} JSON for observation {row_id}")
        return None
    return parsed if isinstance(parsed, dict) else None


def row_to_record(row: Dict[str, Any]) -> ObservationRecord:
    """Map one result row onto an ObservationRecord."""
    data = dict(row)
    criteria = {}
    for column, name in CRITERIA_COLUMNS.items():
        scores = _parse_json_column(data.pop(column, None), data.get("id"), column)
        if scores:
            criteria[name] = scores
    data["criteria_scores"] = criteria
    return ObservationRecord.model_validate(data)


class PostgresObservationSource(ObservationSource):
    """ObservationSource backed by the shared asyncpg pool."""

    def __init__(self, pool: Optional[DatabasePool] = None):
        self._pool = pool

    async def _get_pool(self) -> DatabasePool:
        if self._pool is None:
            self._pool = await get_database_pool()
        return self._pool

    async def fetch_observations(self, scope: FilterScope) -> List[ObservationRecord]:
        """
        Fetch completed observations for a scope.

        Raises:
            QueryError: if the query fails
            DatabaseConnectionError: if the pool cannot be reached
        """
        query, params = build_observation_query(scope)
        pool = await self._get_pool()

        try:
            rows = await pool.fetch(query, *params)
        except asyncpg.PostgresError as e:
            raise QueryError(f"Observation query failed: {e}") from e

        records = []
        for row in rows:
            try:
                records.append(row_to_record(dict(row)))
            except ValidationError as e:
                logger.warning(f"Skipping observation {row['id']}: {e.error_count()} validation errors")

        logger.info(
            f"Fetched {len(records)} observations",
            extra={"scope": scope.describe(), "rows": len(rows)},
        )
        return records
