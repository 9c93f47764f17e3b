"""Tests for report assembly and prompt rendering."""

import json
import re
from datetime import datetime, timezone

import pytest

from observation_insights.analytics.insights import InsightGenerator
from observation_insights.config import AnalyticsConfig
from observation_insights.models import AnalysisType, FilterScope, ReportType
from observation_insights.reports.assembler import ReportAssembler, map_report_type, report_title, summary_findings
from observation_insights.reports.prompts import REPORT_PROMPT, PromptTemplate, PromptVariable, load_prompt_template


GENERATED_AT = datetime(2024, 10, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def assembler():
    return ReportAssembler()


@pytest.fixture
def bundle(school_records):
    return InsightGenerator(AnalyticsConfig()).generate(school_records)


class TestTitlesAndTypes:

    @pytest.mark.parametrize("requested,expected", [
        ("report", ReportType.SCHOOL),
        ("analysis", ReportType.DEPARTMENT),
        ("insights", ReportType.SUBJECT),
        ("suggestions", ReportType.INDIVIDUAL),
        ("keystage", ReportType.KEYSTAGE),
        ("something else", ReportType.SCHOOL),
        (AnalysisType.ANALYSIS, ReportType.DEPARTMENT),
    ])
    def test_map_report_type(self, requested, expected):
        assert map_report_type(requested) == expected

    def test_titles(self):
        assert report_title("report") == "Comprehensive Teaching Observation Report"
        assert report_title(AnalysisType.SUGGESTIONS) == "Improvement Recommendations Report"
        assert report_title("unknown") == "Educational Analysis Report"


class TestSummaryFindings:

    def test_no_data(self):
        findings, recommendations = summary_findings(None, 0, 0)
        assert findings == ["No observation data available"]
        assert recommendations == ["Ensure regular classroom observations are conducted"]

    @pytest.mark.parametrize("average,expected", [
        (3.6, "Overall teaching quality is strong across observations"),
        (2.5, "Teaching quality shows room for improvement"),
        (2.4, "Significant improvement needed in teaching quality"),
    ])
    def test_bands(self, average, expected):
        findings, _ = summary_findings(average, 10, 1)
        assert findings == [expected]

    def test_department_count(self):
        findings, recommendations = summary_findings(3.0, 10, 3)
        assert findings[-1] == "Analysis covers 3 departments"
        assert recommendations == ["Focus on targeted professional development programmes"]


class TestAssemble:

    def test_rule_based_report(self, assembler, school_records, bundle):
        report = assembler.assemble(school_records, "report", bundle=bundle, generated_at=GENERATED_AT)

        assert re.match(r"^report_\d+_[0-9a-f]{9}$", report.id)
        assert report.title == "Comprehensive Teaching Observation Report - 01/10/2024"
        assert report.type == ReportType.SCHOOL
        assert report.metadata["narrative_source"] == "rules"
        assert report.metadata["analysis_type"] == "report"
        assert [s.id for s in report.sections] == [
            "executive_summary", "key_findings", "detailed_analysis", "recommendations", "action_points",
        ]
        assert "5 observations were analysed with an average score of 2.8" in report.sections[0].content
        assert "Schedule follow-up observation for Ben Carter within 4 weeks" in report.sections[-1].content

    def test_summary(self, assembler, school_records, bundle):
        summary = assembler.assemble(school_records, bundle=bundle, generated_at=GENERATED_AT).summary

        assert summary.total_observations == 5
        assert summary.average_score == pytest.approx(2.8)
        assert summary.key_findings[:2] == [
            "Teaching quality shows room for improvement",
            "Analysis covers 2 departments",
        ]
        assert summary.key_findings[2] == bundle.insights[0].text
        assert summary.recommendations[0] == "Focus on targeted professional development programmes"

    def test_model_narrative(self, assembler, school_records, bundle):
        narrative = "## EXECUTIVE SUMMARY\nSolid teaching.\n\n## RECOMMENDATIONS\nMore CPD."
        report = assembler.assemble(school_records, "analysis", bundle=bundle, narrative=narrative,
                                    generated_at=GENERATED_AT)

        assert report.metadata["narrative_source"] == "model"
        assert report.type == ReportType.DEPARTMENT
        assert [(s.id, s.content) for s in report.sections] == [
            ("executive_summary", "Solid teaching."),
            ("recommendations", "More CPD."),
        ]

    def test_unstructured_narrative_uses_fallback_section(self, assembler, school_records):
        report = assembler.assemble(school_records, narrative="Plain prose.", generated_at=GENERATED_AT)
        assert [s.id for s in report.sections] == ["full_report"]

    def test_empty_data(self, assembler):
        report = assembler.assemble([], generated_at=GENERATED_AT)

        assert report.summary.total_observations == 0
        assert report.summary.key_findings == ["No observation data available"]
        assert report.sections
        assert "No observations were found" in report.sections[0].content

    def test_scope_recorded(self, assembler, school_records):
        scope = FilterScope(subject_ids={"Maths"})
        report = assembler.assemble(school_records, scope=scope, generated_at=GENERATED_AT)
        assert report.scope["subject_ids"] == ["Maths"]


class TestPrompt:

    def test_render_prompt(self, assembler, school_records, bundle):
        scope = FilterScope.from_filters({"dateFrom": "2024-09-01", "dateTo": "2024-09-30"})
        prompt = assembler.render_prompt(school_records, scope, AnalysisType.REPORT, bundle)

        assert "Total Observations: 5" in prompt
        assert "Average Score: 2.8" in prompt
        assert "Date Range: 01/09/2024 to 30/09/2024" in prompt
        assert "Departments: English, Mathematics" in prompt
        assert "**KEY FINDINGS**" in prompt

    def test_context_data_is_json_digest(self, assembler, school_records, bundle):
        variables = assembler.prompt_variables(school_records, None, "insights", bundle)
        context = json.loads(variables["context_data"])

        assert context["summary"]["total_observations"] == 5
        assert context["insights"] == [i.text for i in bundle.insights]
        assert variables["date_range"] == "All dates"

    def test_missing_required_variable(self):
        with pytest.raises(ValueError, match="Missing required variables"):
            REPORT_PROMPT.render(analysis_type="report")

    def test_defaults_fill_optional_variables(self):
        template = PromptTemplate(
            name="t",
            template="$a / $b",
            variables=[PromptVariable("a", "first"), PromptVariable("b", "second", required=False, default_value="x")],
        )
        assert template.render(a="1") == "1 / x"

    def test_load_prompt_template(self, tmp_path):
        path = tmp_path / "brief.yaml"
        path.write_text(
            "template: 'Summarise $total_observations observations'\n"
            "variables:\n"
            "  - name: total_observations\n"
            "    description: count\n"
        )
        template = load_prompt_template(path)

        assert template.name == "brief"
        assert template.render(total_observations=3) == "Summarise 3 observations"
