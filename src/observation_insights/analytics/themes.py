"""
Theme extraction from free-text observation narrative.

Scans strengths and areas-for-development text for a fixed vocabulary of
pedagogical keywords and ranks the themes by how many snippets mention them.
"""

from collections import Counter
from typing import Iterable, List, Optional, Sequence

from ..models.analytics import ThemeCount


THEME_VOCABULARY = (
    "differentiation",
    "assessment",
    "engagement",
    "behaviour",
    "planning",
    "questioning",
    "feedback",
    "pace",
    "challenge",
    "support",
)


def extract_themes(
    texts: Iterable[Optional[str]],
    limit: int = 5,
    vocabulary: Sequence[str] = THEME_VOCABULARY,
) -> List[ThemeCount]:
    """
    Count vocabulary themes across text snippets.

    Each snippet counts at most once per theme (case-insensitive substring
    match). Themes are ranked by descending count; ties keep vocabulary order.
    Themes with no mentions are left out.

    Args:
        texts: Narrative snippets; None and empty strings are skipped
        limit: Maximum number of themes to return
        vocabulary: Ordered theme keywords

    Returns:
        Up to `limit` ThemeCount entries
    """
    counts = Counter()
    for text in texts:
        if not text:
            continue
        lowered = text.lower()
        for theme in vocabulary:
            if theme in lowered:
                counts[theme] += 1

    ranked = [theme for theme in vocabulary if counts[theme] > 0]
    # sorted() is stable, so equal counts stay in vocabulary order
    ranked = sorted(ranked, key=lambda theme: -counts[theme])
    return [ThemeCount(theme=theme, count=counts[theme]) for theme in ranked[:limit]]


def top_theme_names(texts: Iterable[Optional[str]], limit: int = 5) -> List[str]:
    """Theme names only, most frequent first."""
    return [entry.theme for entry in extract_themes(texts, limit=limit)]
