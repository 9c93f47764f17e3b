"""
Report assembly.

Combines aggregate statistics, rule-based insights and an optional narrative
into an immutable Report. The narrative normally comes from the external
language model; when none is available a narrative with the same section
headers is written from the insight bundle, so both paths go through the
same section splitter.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from ..analytics.aggregation import summary_stats
from ..models.analytics import InsightBundle, SummaryStats
from ..models.observation import ObservationRecord
from ..models.report import AnalysisType, Report, ReportSummary, ReportType
from ..models.scope import FilterScope
from .prompts import REPORT_PROMPT, PromptTemplate
from .sections import SectionSplitter


logger = logging.getLogger(__name__)

REPORT_TITLES = {
    "report": "Comprehensive Teaching Observation Report",
    "analysis": "Performance Analysis Report",
    "insights": "Teaching Insights and Trends",
    "suggestions": "Improvement Recommendations Report",
    "department": "Department Performance Review",
    "individual": "Individual Teacher Assessment",
    "school": "School-wide Teaching Quality Report",
}
DEFAULT_REPORT_TITLE = "Educational Analysis Report"

ANALYSIS_REPORT_TYPES = {
    AnalysisType.REPORT: ReportType.SCHOOL,
    AnalysisType.ANALYSIS: ReportType.DEPARTMENT,
    AnalysisType.INSIGHTS: ReportType.SUBJECT,
    AnalysisType.SUGGESTIONS: ReportType.INDIVIDUAL,
}

GENERATED_BY = "Observation Insights"
DATA_SOURCE = "Observation Database"

# Number of rule-based insights and recommendations copied into the summary
SUMMARY_ITEM_LIMIT = 3


def report_title(requested_type: Union[str, AnalysisType, ReportType]) -> str:
    key = requested_type.value if hasattr(requested_type, "value") else str(requested_type)
    return REPORT_TITLES.get(key, DEFAULT_REPORT_TITLE)


def map_report_type(requested_type: Union[str, AnalysisType, ReportType]) -> ReportType:
    """Report audience for a requested analysis type; unknown types default to school."""
    if isinstance(requested_type, ReportType):
        return requested_type
    try:
        analysis = AnalysisType(requested_type)
    except ValueError:
        try:
            return ReportType(requested_type)
        except ValueError:
            return ReportType.SCHOOL
    return ANALYSIS_REPORT_TYPES[analysis]


def summary_findings(average: Optional[float], total: int, department_count: int) -> Tuple[List[str], List[str]]:
    """Headline findings and recommendations for the report summary."""
    if total == 0 or average is None:
        return ["No observation data available"], ["Ensure regular classroom observations are conducted"]

    findings, recommendations = [], []
    if average >= 3.5:
        findings.append("Overall teaching quality is strong across observations")
    elif average >= 2.5:
        findings.append("Teaching quality shows room for improvement")
        recommendations.append("Focus on targeted professional development programmes")
    else:
        findings.append("Significant improvement needed in teaching quality")
        recommendations.append("Implement intensive support and mentoring programmes")

    if department_count > 1:
        findings.append(f"Analysis covers {department_count} departments")
    return findings, recommendations


def _format_date_range(scope: Optional[FilterScope]) -> str:
    if scope is None or scope.date_range is None:
        return "All dates"
    date_range = scope.date_range
    return f"{date_range.date_from.strftime('%d/%m/%Y')} to {date_range.date_to.strftime('%d/%m/%Y')}"


def _bullets(items: Sequence[str]) -> str:
    if not items:
        return "- None identified"
    return "\n".join(f"- {item}" for item in items)


class ReportAssembler:
    """Builds Report objects from records, insights and narrative text."""

    def __init__(self, splitter: Optional[SectionSplitter] = None, prompt: Optional[PromptTemplate] = None):
        self.splitter = splitter or SectionSplitter()
        self.prompt = prompt or REPORT_PROMPT

    def summarise(
        self,
        records: Sequence[ObservationRecord],
        bundle: Optional[InsightBundle] = None,
        stats: Optional[SummaryStats] = None,
    ) -> ReportSummary:
        stats = stats or summary_stats(records)
        departments = {r.department for r in records if r.department}
        findings, recommendations = summary_findings(stats.average_score, stats.total_observations, len(departments))

        if bundle is not None:
            findings += [item.text for item in bundle.insights[:SUMMARY_ITEM_LIMIT]]
            recommendations += [item.text for item in bundle.recommendations[:SUMMARY_ITEM_LIMIT]]

        return ReportSummary(
            total_observations=stats.total_observations,
            average_score=stats.average_score,
            key_findings=findings,
            recommendations=recommendations,
        )

    def prompt_variables(
        self,
        records: Sequence[ObservationRecord],
        scope: Optional[FilterScope],
        analysis_type: Union[str, AnalysisType],
        bundle: InsightBundle,
        stats: Optional[SummaryStats] = None,
    ) -> Dict[str, Any]:
        """Variables for the report prompt; the data block is a JSON digest, never raw rows."""
        stats = stats or summary_stats(records)
        departments = sorted({r.department for r in records if r.department})
        key_stages = sorted({r.key_stage for r in records if r.key_stage})
        context = {
            "summary": stats.model_dump(mode="json"),
            "scope": scope.describe() if scope else {},
            **bundle.as_text(),
        }
        average = f"{stats.average_score:.1f}" if stats.average_score is not None else "n/a"
        return {
            "analysis_type": analysis_type.value if hasattr(analysis_type, "value") else str(analysis_type),
            "total_observations": stats.total_observations,
            "average_score": average,
            "date_range": _format_date_range(scope),
            "departments": ", ".join(departments) or "None",
            "key_stages": ", ".join(key_stages) or "None",
            "context_data": json.dumps(context, indent=2, default=str),
        }

    def render_prompt(self, *args, **kwargs) -> str:
        return self.prompt.render(**self.prompt_variables(*args, **kwargs))

    def fallback_narrative(self, summary: ReportSummary, bundle: InsightBundle, stats: SummaryStats) -> str:
        """Narrative written from the rule-based output, in the same header format the model uses."""
        if summary.total_observations == 0:
            overview = "No observations were found for the selected scope."
        elif summary.average_score is None:
            overview = f"{summary.total_observations} observations were analysed; none carried a grade."
        else:
            overview = (
                f"{summary.total_observations} observations were analysed with an average score of "
                f"{summary.average_score:.1f}. {summary.key_findings[0]}."
            )

        counts = stats.grade_distribution
        distribution = (
            f"Grade distribution: Outstanding {counts.outstanding}, Good {counts.good}, "
            f"Requires Improvement {counts.requires_improvement}, Inadequate {counts.inadequate}"
        )
        analysis = [item.text for item in bundle.trends]
        if stats.graded_observations:
            analysis.append(distribution)

        return "\n\n".join([
            f"**EXECUTIVE SUMMARY**\n{overview}",
            f"**KEY FINDINGS**\n{_bullets(summary.key_findings + [i.text for i in bundle.insights[SUMMARY_ITEM_LIMIT:]])}",
            f"**DETAILED ANALYSIS**\n{_bullets(analysis)}",
            f"**RECOMMENDATIONS**\n{_bullets([i.text for i in bundle.recommendations])}",
            f"**ACTION POINTS**\n{_bullets([i.text for i in bundle.action_items])}",
        ])

    def assemble(
        self,
        records: Sequence[ObservationRecord],
        analysis_type: Union[str, AnalysisType] = AnalysisType.REPORT,
        scope: Optional[FilterScope] = None,
        bundle: Optional[InsightBundle] = None,
        narrative: Optional[str] = None,
        generated_at: Optional[datetime] = None,
    ) -> Report:
        """
        Assemble a report.

        Args:
            records: Observations in scope
            analysis_type: Requested analysis type; picks the title and audience
            scope: Filter scope the records were fetched with
            bundle: Rule-based insights for the records
            narrative: Model-written narrative; None writes one from the bundle
            generated_at: Timestamp override, mainly for tests

        Returns:
            Report with at least one section
        """
        generated_at = generated_at or datetime.now(timezone.utc)
        bundle = bundle or InsightBundle()
        stats = summary_stats(records)
        summary = self.summarise(records, bundle, stats)

        narrative_source = "model"
        if narrative is None or not narrative.strip():
            narrative = self.fallback_narrative(summary, bundle, stats)
            narrative_source = "rules"

        sections = self.splitter.split(narrative)
        type_key = analysis_type.value if hasattr(analysis_type, "value") else str(analysis_type)

        report = Report(
            id=f"report_{int(generated_at.timestamp() * 1000)}_{uuid.uuid4().hex[:9]}",
            title=f"{report_title(type_key)} - {generated_at.strftime('%d/%m/%Y')}",
            type=map_report_type(type_key),
            generated_at=generated_at,
            scope=scope.describe() if scope else {},
            summary=summary,
            sections=sections,
            metadata={
                "generated_by": GENERATED_BY,
                "data_source": DATA_SOURCE,
                "analysis_type": type_key,
                "narrative_source": narrative_source,
            },
        )
        logger.info(
            f"Assembled report {report.id} with {len(sections)} sections",
            extra={"report_type": report.type.value, "observations": summary.total_observations},
        )
        return report
