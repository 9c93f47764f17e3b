"""
Grade scale for lesson observations.

Maps the four qualitative observation outcomes onto a 4-point numeric scale
and back again. A value of 0 is the "no grade" sentinel: it marks a record
that cannot take part in averaging and must never be read as a real score.
"""

from enum import Enum
from typing import Optional, Union


NO_GRADE = 0


class Grade(str, Enum):
    """Qualitative observation outcome."""
    OUTSTANDING = "Outstanding"
    GOOD = "Good"
    REQUIRES_IMPROVEMENT = "Requires Improvement"
    INADEQUATE = "Inadequate"

    @property
    def points(self) -> int:
        return _GRADE_POINTS[self]

    @property
    def field_name(self) -> str:
        """Attribute name used for this grade in tallies and exported rows."""
        return _GRADE_FIELDS[self]

    @classmethod
    def from_label(cls, label: Optional[Union[str, "Grade"]]) -> Optional["Grade"]:
        """Parse a stored label, ignoring case and surrounding whitespace."""
        if label is None:
            return None
        if isinstance(label, Grade):
            return label
        normalised = " ".join(str(label).split()).lower()
        for grade in cls:
            if grade.value.lower() == normalised:
                return grade
        return None


_GRADE_POINTS = {
    Grade.OUTSTANDING: 4,
    Grade.GOOD: 3,
    Grade.REQUIRES_IMPROVEMENT: 2,
    Grade.INADEQUATE: 1,
}

_GRADE_FIELDS = {
    Grade.OUTSTANDING: "outstanding",
    Grade.GOOD: "good",
    Grade.REQUIRES_IMPROVEMENT: "requires_improvement",
    Grade.INADEQUATE: "inadequate",
}

# Lower bounds are closed: a score sitting exactly on a boundary takes the
# higher band.
_SCORE_BANDS = (
    (3.5, Grade.OUTSTANDING),
    (2.5, Grade.GOOD),
    (1.5, Grade.REQUIRES_IMPROVEMENT),
)


def grade_to_number(grade: Optional[Union[str, Grade]]) -> int:
    """Convert a grade label to its numeric value, or 0 when it is not a grade."""
    parsed = Grade.from_label(grade)
    if parsed is None:
        return NO_GRADE
    return parsed.points


def classify_score(score: float) -> Grade:
    """Band a continuous score into one of the four grades."""
    for lower_bound, grade in _SCORE_BANDS:
        if score >= lower_bound:
            return grade
    return Grade.INADEQUATE


def resolve_score(grade: Optional[Union[str, Grade]], score: Optional[float] = None) -> float:
    """
    Resolve the numeric score of an observation.

    A positive stored score wins; otherwise the grade label is converted.
    Returns 0 when neither is usable.
    """
    if score is not None and score > 0:
        return float(score)
    return float(grade_to_number(grade))


def resolve_grade(grade: Optional[Union[str, Grade]], score: Optional[float] = None) -> Optional[Grade]:
    """
    Resolve the grade an observation is tallied under.

    The stored label is used when it is a recognised grade, otherwise a
    positive stored score is banded with classify_score.
    """
    parsed = Grade.from_label(grade)
    if parsed is not None:
        return parsed
    if score is not None and score > 0:
        return classify_score(score)
    return None
