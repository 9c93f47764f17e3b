"""Tests for theme extraction."""

from observation_insights.analytics.themes import THEME_VOCABULARY, extract_themes, top_theme_names


def test_differentiation_scenario():
    themes = extract_themes(["Needs work on differentiation and pace", "Good differentiation shown"])

    assert [t.theme for t in themes] == ["differentiation", "pace"]
    assert [t.count for t in themes] == [2, 1]


def test_counts_once_per_snippet():
    themes = extract_themes(["Differentiation, differentiation, DIFFERENTIATION"])
    assert themes[0].theme == "differentiation"
    assert themes[0].count == 1


def test_ties_keep_vocabulary_order():
    # every theme appears exactly once, in reverse vocabulary order
    text = " ".join(reversed(THEME_VOCABULARY))
    themes = extract_themes([text], limit=10)
    assert [t.theme for t in themes] == list(THEME_VOCABULARY)


def test_limit_and_zero_exclusion():
    texts = ["assessment feedback", "assessment pace", "assessment", "behaviour planning questioning"]
    themes = extract_themes(texts)

    assert len(themes) == 5
    assert themes[0].theme == "assessment"
    assert themes[0].count == 3
    assert all(t.count > 0 for t in themes)
    assert "support" not in [t.theme for t in themes]


def test_empty_and_missing_snippets():
    assert extract_themes([]) == []
    assert extract_themes([None, "", "nothing relevant here"]) == []


def test_top_theme_names():
    assert top_theme_names(["engagement and support", "engagement"], limit=1) == ["engagement"]
