"""Report and dataset export to JSON, CSV and plain text."""

import io
import json
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence, Union

import pandas as pd
from pydantic import BaseModel

from ..models.report import Report


logger = logging.getLogger(__name__)

EXPORT_FORMATS = ("json", "csv", "text")


def _csv_cell(value: str) -> str:
    return value.replace("\r\n", " ").replace("\n", " ").replace("\r", " ").replace(",", ";")


def report_to_json(report: Report, indent: int = 2) -> str:
    """Lossless JSON; Report.model_validate_json reads it back."""
    return report.model_dump_json(indent=indent)


def report_to_csv(report: Report) -> str:
    """
    One `Title,Content` row per section.

    Newlines become spaces and commas become semicolons, so every row has
    exactly two fields without quoting.
    """
    lines = ["Title,Content"]
    for section in report.sections:
        lines.append(f"{_csv_cell(section.title)},{_csv_cell(section.content)}")
    return "\n".join(lines)


def report_to_text(report: Report) -> str:
    return "\n\n".join(f"{section.title}\n{section.content}" for section in report.sections)


def export_report(report: Report, fmt: str) -> str:
    fmt = fmt.lower()
    if fmt == "json":
        return report_to_json(report)
    if fmt == "csv":
        return report_to_csv(report)
    if fmt in ("text", "txt"):
        return report_to_text(report)
    raise ValueError(f"Unsupported export format: {fmt}. Expected one of {', '.join(EXPORT_FORMATS)}")


def _row_dict(row: Union[BaseModel, Mapping[str, Any]]) -> dict:
    if isinstance(row, BaseModel):
        return row.model_dump(mode="json")
    return dict(row)


def dataset_to_csv(rows: Iterable[Union[BaseModel, Mapping[str, Any]]]) -> str:
    """
    Tabular dataset (distribution rows, trend points, staff rows) as CSV.

    List-valued cells are joined with "; ". An empty dataset gives an empty
    string.
    """
    records = [_row_dict(row) for row in rows]
    if not records:
        return ""
    # object dtype keeps integer columns with gaps from turning into floats
    frame = pd.DataFrame(records, dtype=object)
    for column in frame.columns:
        if frame[column].map(lambda v: isinstance(v, list)).any():
            frame[column] = frame[column].map(lambda v: "; ".join(map(str, v)) if isinstance(v, list) else v)

    buffer = io.StringIO()
    frame.to_csv(buffer, index=False)
    return buffer.getvalue()


def sectioned_csv(datasets: Mapping[str, Sequence[Union[BaseModel, Mapping[str, Any]]]]) -> str:
    """Several datasets in one CSV document, each under its own `# name` line."""
    blocks = []
    for name, rows in datasets.items():
        body = dataset_to_csv(rows).rstrip("\n")
        blocks.append(f"# {name}\n{body}" if body else f"# {name}")
    return "\n\n".join(blocks) + "\n" if blocks else ""


def write_export(content: str, path: Union[str, Path]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)
    logger.info(f"Wrote {len(content)} characters to {path}")
    return path


def report_from_json(payload: Union[str, bytes]) -> Report:
    return Report.model_validate(json.loads(payload))
