"""Tests for the command-line interface."""

import json

import pytest
from typer.testing import CliRunner

from observation_insights.cli import app


runner = CliRunner()

ROWS = [
    {"id": "1", "teacher_id": "t1", "teacher_name": "Alice Walker", "observation_date": "2024-09-02T09:00:00Z",
     "lesson_subject": "Maths", "class_year": "KS3", "department": "Mathematics", "overall_grade": "Outstanding",
     "strengths": ["Excellent questioning"]},
    {"id": "2", "teacher_id": "t1", "teacher_name": "Alice Walker", "observation_date": "2024-09-09T09:00:00Z",
     "lesson_subject": "Maths", "class_year": "KS3", "department": "Mathematics", "overall_grade": "Good"},
    {"id": "3", "teacher_id": "t2", "teacher_name": "Ben Carter", "observation_date": "2024-09-05T09:00:00Z",
     "lesson_subject": "English", "class_year": "KS4", "department": "English", "overall_grade": "Inadequate",
     "areas_for_development": ["Differentiation"]},
]


@pytest.fixture
def export_file(tmp_path):
    path = tmp_path / "observations.json"
    path.write_text(json.dumps({"observations": ROWS}))
    return path


def test_version():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output


def test_analyze_by_subject(export_file):
    result = runner.invoke(app, ["analyze", str(export_file), "--by", "subject"])

    assert result.exit_code == 0
    assert "Maths" in result.output
    assert "English" in result.output


def test_analyze_writes_csv(export_file, tmp_path):
    csv_path = tmp_path / "subjects.csv"
    result = runner.invoke(app, ["analyze", str(export_file), "--by", "department", "--csv", str(csv_path)])

    assert result.exit_code == 0
    lines = csv_path.read_text().splitlines()
    assert lines[0].startswith("name,count")
    assert lines[1].startswith("Mathematics,2")


def test_analyze_with_filters(export_file, tmp_path):
    csv_path = tmp_path / "filtered.csv"
    result = runner.invoke(app, ["analyze", str(export_file), "--by", "subject", "--teacher", "t2",
                                 "--csv", str(csv_path)])

    assert result.exit_code == 0
    assert "Maths" not in csv_path.read_text()


def test_unknown_dimension(export_file):
    result = runner.invoke(app, ["analyze", str(export_file), "--by", "weather"])
    assert result.exit_code == 2


def test_invalid_dates(export_file):
    result = runner.invoke(app, ["analyze", str(export_file), "--from", "2024-09-30", "--to", "2024-09-01"])
    assert result.exit_code == 2
    assert "Invalid filters" in result.output


def test_insights(export_file):
    result = runner.invoke(app, ["insights", str(export_file)])

    assert result.exit_code == 0
    assert "Insights" in result.output
    assert "Action Items" in result.output


def test_insights_without_matches(export_file):
    result = runner.invoke(app, ["insights", str(export_file), "--subject", "Latin"])

    assert result.exit_code == 0
    assert "No observations match" in result.output


def test_report_to_csv_file(export_file, tmp_path):
    output = tmp_path / "report.csv"
    result = runner.invoke(app, ["report", str(export_file), "--format", "csv", "--output", str(output)])

    assert result.exit_code == 0
    content = output.read_text()
    assert content.startswith("Title,Content\nExecutive Summary,")


def test_report_json_to_stdout(export_file):
    result = runner.invoke(app, ["report", str(export_file), "--analysis", "suggestions", "--format", "json"])

    assert result.exit_code == 0
    assert "Improvement Recommendations Report" in result.output


def test_report_unknown_format(export_file):
    result = runner.invoke(app, ["report", str(export_file), "--format", "pdf"])
    assert result.exit_code == 2
