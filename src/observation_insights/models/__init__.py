"""
Core data models for observation insights.

This package contains:
- The observation record read from the data store
- The filter scope and actor permission models
- Analytics output schemas and report schemas
"""

from .observation import ObservationRecord
from .scope import DateRange, FilterScope, InvalidScopeError
from .permissions import ActorRole, ActorScope, PermissionDeniedError
from .analytics import (
    CriteriaBreakdownRow,
    DistributionRow,
    GradeCounts,
    GradePercentages,
    HalvesComparison,
    Insight,
    InsightBundle,
    InsightKind,
    ObserverRow,
    PeriodComparison,
    StaffAnalysis,
    StaffRow,
    SummaryStats,
    ThemeCount,
    TrendDirection,
    TrendPoint,
    WindowComparison,
)
from .report import AnalysisType, Report, ReportSection, ReportSummary, ReportType, SectionType

__all__ = [
    # Records and scope
    "ObservationRecord",
    "DateRange",
    "FilterScope",
    "InvalidScopeError",

    # Permissions
    "ActorRole",
    "ActorScope",
    "PermissionDeniedError",

    # Analytics outputs
    "CriteriaBreakdownRow",
    "DistributionRow",
    "GradeCounts",
    "GradePercentages",
    "HalvesComparison",
    "Insight",
    "InsightBundle",
    "InsightKind",
    "ObserverRow",
    "PeriodComparison",
    "StaffAnalysis",
    "StaffRow",
    "SummaryStats",
    "ThemeCount",
    "TrendDirection",
    "TrendPoint",
    "WindowComparison",

    # Reports
    "AnalysisType",
    "Report",
    "ReportSection",
    "ReportSummary",
    "ReportType",
    "SectionType",
]
