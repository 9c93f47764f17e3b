"""
Observation record model mapping rows of the feedback table.

Rows arrive either from the asyncpg query layer or from JSON dumps of the
hosted data store, so column names (lesson_subject, class_year, ...) are
accepted alongside the field names used by the analytics engine.
"""

from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from ..analytics.grades import Grade, resolve_grade, resolve_score


class ObservationRecord(BaseModel):
    """A single completed lesson observation."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    id: str
    teacher_id: Optional[str] = None
    teacher_name: Optional[str] = None
    observer_id: Optional[str] = None
    observer_name: Optional[str] = None
    observation_date: datetime

    # Categorical dimensions
    subject: Optional[str] = Field(None, validation_alias=AliasChoices("subject", "lesson_subject"))
    subject_id: Optional[str] = None
    key_stage: Optional[str] = Field(None, validation_alias=AliasChoices("key_stage", "class_year"))
    key_stage_id: Optional[str] = None
    department: Optional[str] = None
    observation_type: Optional[str] = None
    observation_type_id: Optional[str] = None

    # Outcome
    overall_grade: Optional[str] = None
    overall_score: Optional[float] = Field(None, validation_alias=AliasChoices("overall_score", "overall_rating"))
    criteria_scores: Dict[str, float] = Field(default_factory=dict)

    # Narrative
    strengths: Optional[str] = None
    areas_for_development: Optional[str] = None
    lesson_duration: Optional[float] = None

    @field_validator("id", "teacher_id", "observer_id", "subject_id", "key_stage_id", "observation_type_id", mode="before")
    @classmethod
    def coerce_identifier(cls, v):
        """UUIDs from asyncpg and integers from JSON dumps are stored as strings."""
        if v is None:
            return v
        return str(v)

    @field_validator("observation_date", mode="before")
    @classmethod
    def coerce_date(cls, v):
        """Plain dates are treated as midnight UTC."""
        if isinstance(v, date) and not isinstance(v, datetime):
            return datetime.combine(v, time.min, tzinfo=timezone.utc)
        return v

    @field_validator("observation_date")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @field_validator("overall_grade", mode="before")
    @classmethod
    def normalise_grade(cls, v):
        """Canonicalise recognised labels; anything else is kept verbatim."""
        if v is None:
            return None
        if isinstance(v, Grade):
            return v.value
        text = str(v).strip()
        if not text:
            return None
        parsed = Grade.from_label(text)
        return parsed.value if parsed else text

    @field_validator("strengths", "areas_for_development", mode="before")
    @classmethod
    def join_narrative(cls, v):
        """Narrative columns are text arrays in the data store."""
        if v is None:
            return None
        if isinstance(v, (list, tuple)):
            parts = [str(item).strip() for item in v if item is not None and str(item).strip()]
            return "; ".join(parts) if parts else None
        text = str(v).strip()
        return text or None

    @field_validator("criteria_scores", mode="before")
    @classmethod
    def flatten_criteria(cls, v):
        """A criterion stored as a dict of sub-scores is reduced to their mean."""
        if not v:
            return {}
        flattened = {}
        for criterion, value in v.items():
            score = _criterion_score(value)
            if score is not None:
                flattened[criterion] = score
        return flattened

    @property
    def numeric_score(self) -> float:
        """Resolved score on the 4-point scale, 0 when the record is ungraded."""
        return resolve_score(self.overall_grade, self.overall_score)

    @property
    def is_graded(self) -> bool:
        return self.numeric_score > 0

    @property
    def grade(self) -> Optional[Grade]:
        return resolve_grade(self.overall_grade, self.overall_score)

    def narrative_texts(self) -> List[str]:
        """All free-text fields that carry content."""
        return [text for text in (self.strengths, self.areas_for_development) if text]


def _criterion_score(value: Union[None, int, float, Dict[str, Any]]) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, dict):
        numeric = [float(score) for score in value.values() if isinstance(score, (int, float))]
        if not numeric:
            return None
        return sum(numeric) / len(numeric)
    if isinstance(value, (int, float)):
        return float(value)
    return None
