"""Report schemas produced by the report assembler."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ReportType(str, Enum):
    """Audience a report is written for."""
    INDIVIDUAL = "individual"
    DEPARTMENT = "department"
    SCHOOL = "school"
    SUBJECT = "subject"
    KEYSTAGE = "keystage"


class AnalysisType(str, Enum):
    """What the requester asked the assistant for."""
    REPORT = "report"
    ANALYSIS = "analysis"
    INSIGHTS = "insights"
    SUGGESTIONS = "suggestions"


class SectionType(str, Enum):
    TEXT = "text"
    CHART = "chart"
    TABLE = "table"
    LIST = "list"


class ReportSection(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    content: str
    type: SectionType = SectionType.TEXT


class ReportSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_observations: int = 0
    average_score: Optional[float] = None
    key_findings: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class Report(BaseModel):
    """A generated report; immutable once assembled."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    type: ReportType
    generated_at: datetime
    scope: Dict[str, Any] = Field(default_factory=dict)
    summary: ReportSummary = Field(default_factory=ReportSummary)
    sections: List[ReportSection] = Field(default_factory=list)
    export_formats: List[str] = Field(default_factory=lambda: ["json", "csv", "text"])
    metadata: Dict[str, Any] = Field(default_factory=dict)
