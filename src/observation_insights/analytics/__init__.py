"""
Analytics engine for lesson observations.

Modules:
- grades: grade scale, grade/score conversion and banding
- themes: keyword theme extraction from narrative text
- trends: halves, window, moving average and period comparisons
- aggregation: grouping records and building dashboard rows
- insights: rule-based insight, recommendation and action item generation

Only the grade scale is re-exported here; the models package depends on it,
so importing the heavier modules at package level would be circular.
"""

from .grades import NO_GRADE, Grade, classify_score, grade_to_number, resolve_grade, resolve_score

__all__ = [
    "NO_GRADE",
    "Grade",
    "classify_score",
    "grade_to_number",
    "resolve_grade",
    "resolve_score",
]
