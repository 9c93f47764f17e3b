"""
Output schemas produced by the analytics engine.

These are the plain-data shapes handed to the presentation layer: grade
tallies, per-dimension distribution rows, trend points, staff and observer
rows, summary statistics and rule-based insights. Every shape has a defined
zero state so callers never have to special-case missing data.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from ..analytics.grades import Grade


class TrendDirection(str, Enum):
    """Trend direction indicators."""
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class InsightKind(str, Enum):
    """Kinds of generated insight."""
    STRENGTH = "strength"
    CONCERN = "concern"
    TREND = "trend"
    RECOMMENDATION = "recommendation"


class GradeCounts(BaseModel):
    """Tally of gradeable observations per grade."""
    outstanding: int = 0
    good: int = 0
    requires_improvement: int = 0
    inadequate: int = 0

    def increment(self, grade: Grade) -> None:
        setattr(self, grade.field_name, getattr(self, grade.field_name) + 1)

    def count(self, grade: Grade) -> int:
        return getattr(self, grade.field_name)

    @property
    def total(self) -> int:
        return self.outstanding + self.good + self.requires_improvement + self.inadequate

    def merge(self, other: "GradeCounts") -> "GradeCounts":
        return GradeCounts(
            outstanding=self.outstanding + other.outstanding,
            good=self.good + other.good,
            requires_improvement=self.requires_improvement + other.requires_improvement,
            inadequate=self.inadequate + other.inadequate,
        )

    def fractions(self) -> Dict[Grade, float]:
        """Share of each grade among the tallied observations (all 0 when empty)."""
        total = self.total
        if total == 0:
            return {grade: 0.0 for grade in Grade}
        return {grade: self.count(grade) / total for grade in Grade}


class GradePercentages(BaseModel):
    """Grade shares in percent over a visible subset of rows."""
    outstanding: float = 0.0
    good: float = 0.0
    requires_improvement: float = 0.0
    inadequate: float = 0.0
    gradeable_total: int = 0


class CriteriaBreakdownRow(BaseModel):
    """Grade tallies for one teaching criterion."""
    criteria: str
    outstanding: int = 0
    good: int = 0
    requires_improvement: int = 0
    inadequate: int = 0
    total: int = 0
    average: Optional[float] = None


class TrendPoint(BaseModel):
    """One date bucket of the observation trend series."""
    date: str
    average_score: Optional[float] = None
    total_observations: int = 0
    outstanding: int = 0
    good: int = 0
    requires_improvement: int = 0
    inadequate: int = 0
    moving_average: Optional[float] = None


class DistributionRow(BaseModel):
    """
    Aggregate row for one value of a categorical dimension.

    Shared by the subject, observation type, key stage and department views.
    """
    name: str
    count: int = 0
    graded_count: int = 0
    percentage: float = 0.0
    average_score: Optional[float] = None
    outstanding: int = 0
    good: int = 0
    requires_improvement: int = 0
    inadequate: int = 0
    staff_count: int = 0
    average_duration: Optional[float] = None
    trend: Optional[TrendDirection] = None


class StaffRow(BaseModel):
    """Per-teacher aggregate for the staff analysis table."""
    id: str
    name: str
    department: str = "Unknown"
    subject: str = "Unknown"
    key_stage: str = "Unknown"
    total_observations: int = 0
    average_score: Optional[float] = None
    last_observation_date: Optional[datetime] = None
    days_since_last_observation: Optional[int] = None
    outstanding: int = 0
    good: int = 0
    requires_improvement: int = 0
    inadequate: int = 0
    trend: TrendDirection = TrendDirection.STABLE
    previous_score: Optional[float] = None
    observed_by: List[str] = Field(default_factory=list)
    needs_development: bool = False
    immediate_concern: bool = False


class ObserverRow(BaseModel):
    """Per-observer aggregate."""
    name: str
    observations_count: int = 0
    average_score: Optional[float] = None
    departments: List[str] = Field(default_factory=list)


class StaffAnalysis(BaseModel):
    staff_data: List[StaffRow] = Field(default_factory=list)
    observer_data: List[ObserverRow] = Field(default_factory=list)


class HalvesComparison(BaseModel):
    """First-half versus second-half comparison of a date-ordered series."""
    direction: TrendDirection
    first_half_average: float
    second_half_average: float
    difference: float


class WindowComparison(BaseModel):
    """Recent window versus the window before it."""
    direction: TrendDirection = TrendDirection.STABLE
    percentage: float = 0.0
    recent_average: Optional[float] = None
    previous_average: Optional[float] = None

    @property
    def is_improving(self) -> bool:
        return self.percentage > 0


class PeriodComparison(BaseModel):
    """Current period average against the real previous period, when known."""
    current_period: Optional[float] = None
    previous_period: Optional[float] = None
    change: Optional[float] = None
    change_percentage: Optional[float] = None


class SummaryStats(BaseModel):
    """Headline figures for the analytics dashboard."""
    total_observations: int = 0
    graded_observations: int = 0
    average_score: Optional[float] = None
    total_teachers: int = 0
    total_observers: int = 0
    grade_distribution: GradeCounts = Field(default_factory=GradeCounts)
    period_comparison: PeriodComparison = Field(default_factory=PeriodComparison)
    recent_trend: WindowComparison = Field(default_factory=WindowComparison)


class ThemeCount(BaseModel):
    theme: str
    count: int


class Insight(BaseModel):
    """A short, rule-derived statement about the observation data."""
    kind: InsightKind
    text: str
    supporting_count: int = 0


class InsightBundle(BaseModel):
    """Everything produced by one insight generation pass."""
    insights: List[Insight] = Field(default_factory=list)
    recommendations: List[Insight] = Field(default_factory=list)
    trends: List[Insight] = Field(default_factory=list)
    action_items: List[Insight] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.insights or self.recommendations or self.trends or self.action_items)

    def as_text(self) -> Dict[str, List[str]]:
        """The bundle as plain string lists, the shape the chat assistant shows."""
        return {
            "insights": [item.text for item in self.insights],
            "recommendations": [item.text for item in self.recommendations],
            "trends": [item.text for item in self.trends],
            "action_items": [item.text for item in self.action_items],
        }
