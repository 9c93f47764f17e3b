"""Tests for report and dataset export."""

from datetime import datetime, timezone

import pytest

from observation_insights.analytics.aggregation import aggregate, by_subject, distribution_rows
from observation_insights.models import Report, ReportSection, ReportType
from observation_insights.reports.export import (
    dataset_to_csv,
    export_report,
    report_from_json,
    report_to_csv,
    report_to_text,
    sectioned_csv,
    write_export,
)


@pytest.fixture
def report():
    return Report(
        id="report_1_abc",
        title="Performance Analysis Report - 01/10/2024",
        type=ReportType.DEPARTMENT,
        generated_at=datetime(2024, 10, 1, tzinfo=timezone.utc),
        sections=[
            ReportSection(id="executive_summary", title="Executive Summary", content="Good overall,\nwith gaps"),
            ReportSection(id="recommendations", title="Recommendations", content="- CPD\n- Mentoring"),
        ],
    )


def test_csv_has_two_fields_per_row(report):
    csv_text = report_to_csv(report)
    lines = csv_text.split("\n")

    assert lines[0] == "Title,Content"
    assert lines[1] == "Executive Summary,Good overall; with gaps"
    assert lines[2] == "Recommendations,- CPD - Mentoring"
    assert all(line.count(",") == 1 for line in lines)


def test_text_export(report):
    assert report_to_text(report) == "Executive Summary\nGood overall,\nwith gaps\n\nRecommendations\n- CPD\n- Mentoring"


def test_json_round_trip(report):
    restored = report_from_json(export_report(report, "json"))
    assert restored == report


@pytest.mark.parametrize("fmt", ["CSV", "txt", "text"])
def test_export_format_names(report, fmt):
    assert export_report(report, fmt)


def test_unsupported_format(report):
    with pytest.raises(ValueError, match="Unsupported export format"):
        export_report(report, "pdf")


class TestDatasets:

    def test_distribution_rows(self, school_records):
        rows = distribution_rows(aggregate(school_records, by_subject))
        lines = dataset_to_csv(rows).strip().split("\n")

        header = lines[0].split(",")
        assert "name" in header and "count" in header
        assert lines[1].startswith("Maths,3")

    def test_list_cells_are_joined(self):
        csv_text = dataset_to_csv([{"name": "Ms Patel", "departments": ["English", "Drama"]}])
        assert "English; Drama" in csv_text

    def test_empty_dataset(self):
        assert dataset_to_csv([]) == ""

    def test_sectioned_csv(self):
        text = sectioned_csv({"subjects": [{"name": "Maths", "count": 3}], "staff": []})

        assert text.startswith("# subjects\nname,count\nMaths,3")
        assert "# staff" in text


def test_write_export(tmp_path):
    path = write_export("Title,Content\n", tmp_path / "out" / "report.csv")
    assert path.read_text(encoding="utf-8") == "Title,Content\n"
