"""
Splitting free-form narrative into named report sections.

A narrative is expected to use uppercase headers such as `**KEY FINDINGS**`,
`## KEY FINDINGS` or `KEY FINDINGS:`. Each header starts a section that runs
until the next recognised header. Narrative without any recognised header
becomes a single fallback section, so a report always has content.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Pattern, Tuple, Union

import yaml

from ..models.report import ReportSection, SectionType


logger = logging.getLogger(__name__)

FALLBACK_SECTION_ID = "full_report"
FALLBACK_SECTION_TITLE = "Analysis Report"


def header_pattern(header: str) -> Pattern:
    """
    Line-anchored pattern for one header.

    Tolerates markdown heading marks, bold markers and a trailing colon.
    The header either ends its line or is followed by a colon and text on
    the same line, so prose that opens with the header words never matches.
    Matching is case-sensitive, headers are expected in uppercase.
    """
    return re.compile(
        r"^[ \t]*(?:#{1,6}[ \t]*)?(?:\*\*)?[ \t]*"
        + re.escape(header)
        + r"(?:[ \t]*:?[ \t]*(?:\*\*)?[ \t]*:?[ \t]*$"
        + r"|[ \t]*(?:\*\*)?[ \t]*:(?:[ \t]*\*\*)?(?=[ \t]*\S))",
        re.MULTILINE,
    )


@dataclass(frozen=True)
class SectionMatcher:
    """One recognisable section: its id, display title and header pattern."""
    id: str
    title: str
    pattern: Pattern

    @classmethod
    def for_header(cls, id: str, title: str, header: Optional[str] = None) -> "SectionMatcher":
        return cls(id=id, title=title, pattern=header_pattern(header or title.upper()))


DEFAULT_SECTIONS: Tuple[SectionMatcher, ...] = (
    SectionMatcher.for_header("executive_summary", "Executive Summary", "EXECUTIVE SUMMARY"),
    SectionMatcher.for_header("key_findings", "Key Findings", "KEY FINDINGS"),
    SectionMatcher.for_header("detailed_analysis", "Detailed Analysis", "DETAILED ANALYSIS"),
    SectionMatcher.for_header("recommendations", "Recommendations", "RECOMMENDATIONS"),
    SectionMatcher.for_header("action_points", "Action Points", "ACTION POINTS"),
)


class SectionSplitter:
    """Splits narrative text into sections using an ordered list of matchers."""

    def __init__(self, matchers: Optional[Iterable[SectionMatcher]] = None):
        self.matchers = tuple(matchers) if matchers is not None else DEFAULT_SECTIONS
        if not self.matchers:
            raise ValueError("SectionSplitter needs at least one section matcher")

    def split(self, text: str) -> List[ReportSection]:
        """
        Split narrative text into report sections.

        Sections come back in matcher order. A header that appears more than
        once only counts the first time; sections with empty content are
        dropped.

        Returns:
            At least one section; the whole text under "Analysis Report" when
            no header is recognised
        """
        text = text or ""
        found = []
        for matcher in self.matchers:
            match = matcher.pattern.search(text)
            if match:
                found.append((match.start(), match.end(), matcher))

        boundaries = sorted(start for start, _, _ in found)
        sections = []
        for start, end, matcher in found:
            next_start = next((b for b in boundaries if b > start), len(text))
            content = text[end:next_start].strip()
            if content:
                sections.append(ReportSection(id=matcher.id, title=matcher.title, content=content, type=SectionType.TEXT))

        if not sections:
            logger.debug("No section headers recognised, using a single fallback section")
            return [ReportSection(
                id=FALLBACK_SECTION_ID,
                title=FALLBACK_SECTION_TITLE,
                content=text.strip(),
                type=SectionType.TEXT,
            )]
        return sections

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "SectionSplitter":
        """
        Build a splitter from a YAML file.

        Expected layout::

            sections:
              - id: executive_summary
                title: Executive Summary
                header: EXECUTIVE SUMMARY
              - id: next_steps
                title: Next Steps
                pattern: '^NEXT STEPS:?'

        `pattern` is a raw regex (multiline) and wins over `header`.
        """
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        entries = data.get("sections") or []
        if not entries:
            raise ValueError(f"No sections defined in {path}")

        matchers = []
        for entry in entries:
            if "id" not in entry or "title" not in entry:
                raise ValueError(f"Section entries need 'id' and 'title': {entry}")
            if entry.get("pattern"):
                matchers.append(SectionMatcher(
                    id=entry["id"],
                    title=entry["title"],
                    pattern=re.compile(entry["pattern"], re.MULTILINE),
                ))
            else:
                matchers.append(SectionMatcher.for_header(entry["id"], entry["title"], entry.get("header")))

        logger.info(f"Loaded {len(matchers)} section definitions from {path}")
        return cls(matchers)
