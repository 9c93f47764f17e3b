"""
Report assembly and export.

- assembler: builds Report objects from records, insights and narrative
- sections: splits narrative into named sections
- prompts: narrative prompt templates
- export: JSON, CSV and text export
"""

from .assembler import ReportAssembler, map_report_type, report_title
from .export import dataset_to_csv, export_report, report_to_csv, report_to_json, report_to_text
from .prompts import REPORT_PROMPT, SYSTEM_PROMPT, PromptTemplate, PromptVariable
from .sections import DEFAULT_SECTIONS, SectionMatcher, SectionSplitter

__all__ = [
    "ReportAssembler",
    "map_report_type",
    "report_title",
    "dataset_to_csv",
    "export_report",
    "report_to_csv",
    "report_to_json",
    "report_to_text",
    "REPORT_PROMPT",
    "SYSTEM_PROMPT",
    "PromptTemplate",
    "PromptVariable",
    "DEFAULT_SECTIONS",
    "SectionMatcher",
    "SectionSplitter",
]
