"""
Filter scope threaded through every aggregation call.

A scope is immutable: it is built once per request, used to query the data
store and never modified while the aggregates are computed.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Any, FrozenSet, Iterable, Mapping, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from .observation import ObservationRecord


class InvalidScopeError(ValueError):
    """Raised when a filter scope cannot be used to query observations."""
    pass


class DateRange(BaseModel):
    """Inclusive date range."""

    model_config = ConfigDict(frozen=True)

    date_from: datetime
    date_to: datetime

    @field_validator("date_from", "date_to", mode="before")
    @classmethod
    def coerce_bound(cls, v, info):
        """Plain dates cover the whole day: start of day for date_from, end of day for date_to."""
        if isinstance(v, str) and len(v) == 10:
            v = date.fromisoformat(v)
        if isinstance(v, date) and not isinstance(v, datetime):
            bound = time.max if info.field_name == "date_to" else time.min
            return datetime.combine(v, bound, tzinfo=timezone.utc)
        return v

    @field_validator("date_from", "date_to")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @model_validator(mode="after")
    def check_order(self):
        if self.date_from > self.date_to:
            raise ValueError(
                f"date range start {self.date_from.isoformat()} is after its end {self.date_to.isoformat()}"
            )
        return self

    @property
    def length(self) -> timedelta:
        return self.date_to - self.date_from

    def contains(self, moment: datetime) -> bool:
        return self.date_from <= moment <= self.date_to


class FilterScope(BaseModel):
    """Date range and dimension id-sets; empty fields are unconstrained."""

    model_config = ConfigDict(frozen=True)

    date_range: Optional[DateRange] = None
    subject_ids: FrozenSet[str] = frozenset()
    key_stage_ids: FrozenSet[str] = frozenset()
    observation_type_ids: FrozenSet[str] = frozenset()
    teacher_ids: FrozenSet[str] = frozenset()
    department_ids: FrozenSet[str] = frozenset()

    @field_validator(
        "subject_ids", "key_stage_ids", "observation_type_ids", "teacher_ids", "department_ids",
        mode="before",
    )
    @classmethod
    def coerce_ids(cls, v):
        if v is None:
            return frozenset()
        if isinstance(v, str):
            return frozenset([v])
        return frozenset(str(item) for item in v if item is not None and str(item) != "")

    @classmethod
    def from_filters(cls, filters: Optional[Mapping[str, Any]] = None) -> "FilterScope":
        """
        Build a scope from the dashboard's flat filter mapping.

        Accepts dateFrom/dateTo plus the *Ids lists (camelCase or snake_case).

        Raises:
            InvalidScopeError: if the filters are malformed, e.g. dateFrom > dateTo
        """
        filters = dict(filters or {})

        def pick(*names):
            for name in names:
                if filters.get(name) not in (None, "", []):
                    return filters[name]
            return None

        date_from = pick("dateFrom", "date_from")
        date_to = pick("dateTo", "date_to")

        payload = {
            "subject_ids": pick("subjectIds", "subject_ids"),
            "key_stage_ids": pick("keyStageIds", "key_stage_ids"),
            "observation_type_ids": pick("observationTypeIds", "observation_type_ids"),
            "teacher_ids": pick("teacherIds", "teacher_ids"),
            "department_ids": pick("departmentIds", "department_ids"),
        }
        if date_from is not None or date_to is not None:
            if date_from is None or date_to is None:
                raise InvalidScopeError("a date range needs both dateFrom and dateTo")
            payload["date_range"] = {"date_from": date_from, "date_to": date_to}

        try:
            return cls.model_validate(payload)
        except ValidationError as e:
            raise InvalidScopeError(f"invalid filter scope: {_first_error(e)}") from e

    @property
    def is_unconstrained(self) -> bool:
        return self.date_range is None and not any((
            self.subject_ids,
            self.key_stage_ids,
            self.observation_type_ids,
            self.teacher_ids,
            self.department_ids,
        ))

    def with_teacher_ids(self, teacher_ids: Iterable[str]) -> "FilterScope":
        """Copy of this scope restricted to the given teachers."""
        return self.model_copy(update={"teacher_ids": frozenset(teacher_ids)})

    def previous_period(self) -> Optional["FilterScope"]:
        """
        The equal-length window immediately before this scope's date range.

        Returns None when the scope has no date range, since there is no
        period to compare against.
        """
        if self.date_range is None:
            return None
        length = self.date_range.length
        previous_to = self.date_range.date_from - timedelta(microseconds=1)
        previous_range = DateRange(date_from=previous_to - length, date_to=previous_to)
        return self.model_copy(update={"date_range": previous_range})

    def matches(self, record: ObservationRecord) -> bool:
        """Apply the scope to a record held in memory."""
        if self.date_range and not self.date_range.contains(record.observation_date):
            return False
        if self.teacher_ids and record.teacher_id not in self.teacher_ids:
            return False
        if self.subject_ids and not _matches_any(self.subject_ids, record.subject_id, record.subject):
            return False
        if self.key_stage_ids and not _matches_any(self.key_stage_ids, record.key_stage_id, record.key_stage):
            return False
        if self.observation_type_ids and not _matches_any(
            self.observation_type_ids, record.observation_type_id, record.observation_type
        ):
            return False
        if self.department_ids and record.department not in self.department_ids:
            return False
        return True

    def describe(self) -> dict:
        """JSON-friendly representation used in report metadata and prompts."""
        return {
            "date_range": {
                "from": self.date_range.date_from.isoformat(),
                "to": self.date_range.date_to.isoformat(),
            } if self.date_range else None,
            "subject_ids": sorted(self.subject_ids),
            "key_stage_ids": sorted(self.key_stage_ids),
            "observation_type_ids": sorted(self.observation_type_ids),
            "teacher_ids": sorted(self.teacher_ids),
            "department_ids": sorted(self.department_ids),
        }


def _matches_any(allowed: FrozenSet[str], *values: Optional[str]) -> bool:
    return any(value is not None and value in allowed for value in values)


def _first_error(error: ValidationError) -> str:
    errors = error.errors()
    if not errors:
        return str(error)
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "invalid value")
    return f"{location}: {message}" if location else message
