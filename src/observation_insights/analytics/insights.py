"""
Rule-based insight generation.

Turns a set of observation records into short insights, recommendations,
trend statements and action items. All rules are deterministic: the same
records always give the same strings in the same order, which keeps reports
reproducible and testable.
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from ..config import AnalyticsConfig
from ..models.analytics import Insight, InsightBundle, InsightKind, TrendDirection
from ..models.observation import ObservationRecord
from .aggregation import AggregateBucket, aggregate, by_key_stage, by_subject, by_teacher, overall_bucket
from .grades import Grade
from .themes import top_theme_names
from .trends import compare_halves, ordered_scores


logger = logging.getLogger(__name__)

WHOLE_SCHOOL_THEMES = {
    "differentiation": "Implement whole-school CPD on differentiation strategies",
    "assessment": "Review and enhance assessment for learning practices across all departments",
}

TREND_STATEMENTS = {
    TrendDirection.UP: "Positive trend: Overall teaching quality has improved over the observation period",
    TrendDirection.DOWN: "Concerning trend: Teaching quality appears to be declining and requires attention",
    TrendDirection.STABLE: "Stable performance: Teaching quality has remained consistent throughout the observation period",
}


def _extremes(buckets: Dict[str, AggregateBucket]) -> Optional[Tuple[Tuple[str, float], Tuple[str, float]]]:
    """Highest and lowest averaged buckets; equal averages resolve to the smaller key."""
    averaged = [(key, bucket.average) for key, bucket in buckets.items() if bucket.average is not None]
    if len(averaged) < 2:
        return None
    best = min(averaged, key=lambda item: (-item[1], item[0]))
    worst = min(averaged, key=lambda item: (item[1], item[0]))
    return best, worst


class InsightGenerator:
    """
    Derives insights, recommendations, trends and action items from records.

    Thresholds come from AnalyticsConfig so deployments can tune them without
    code changes.
    """

    def __init__(self, config: Optional[AnalyticsConfig] = None):
        self.config = config or AnalyticsConfig()

    def generate(self, records: Sequence[ObservationRecord]) -> InsightBundle:
        """
        Run every rule over the records.

        Args:
            records: Observations already restricted to the requested scope

        Returns:
            InsightBundle; empty when there are no records
        """
        if not records:
            return InsightBundle()

        # Stable chronological order for every rule below
        ordered = sorted(records, key=lambda r: (r.observation_date, r.id))

        bundle = InsightBundle(
            insights=self.pattern_insights(ordered),
            recommendations=self.recommendations(ordered),
            trends=self.trend_statements(ordered),
            action_items=self.action_items(ordered),
        )
        logger.debug(
            f"Generated {len(bundle.insights)} insights, {len(bundle.recommendations)} recommendations, "
            f"{len(bundle.trends)} trends and {len(bundle.action_items)} action items from {len(records)} records"
        )
        return bundle

    def pattern_insights(self, records: Sequence[ObservationRecord]) -> List[Insight]:
        insights = []
        counts = overall_bucket(records).grade_counts
        fractions = counts.fractions()

        if fractions[Grade.OUTSTANDING] > self.config.outstanding_ratio_threshold:
            insights.append(Insight(
                kind=InsightKind.STRENGTH,
                text=f"Excellent performance: {round(fractions[Grade.OUTSTANDING] * 100)}% of lessons rated as Outstanding",
                supporting_count=counts.outstanding,
            ))

        if fractions[Grade.INADEQUATE] > self.config.inadequate_ratio_threshold:
            insights.append(Insight(
                kind=InsightKind.CONCERN,
                text=f"Area of concern: {round(fractions[Grade.INADEQUATE] * 100)}% of lessons rated as Inadequate",
                supporting_count=counts.inadequate,
            ))

        subjects = aggregate(records, by_subject)
        extremes = _extremes(subjects)
        if extremes:
            (top, top_avg), (bottom, bottom_avg) = extremes
            if top_avg - bottom_avg > self.config.comparison_min_gap:
                insights.append(Insight(
                    kind=InsightKind.TREND,
                    text=f"{top} shows strongest performance whilst {bottom} may benefit from additional support",
                    supporting_count=subjects[top].graded_count + subjects[bottom].graded_count,
                ))

        strengths = top_theme_names([r.strengths for r in records], limit=self.config.theme_limit)
        if strengths:
            insights.append(Insight(
                kind=InsightKind.STRENGTH,
                text=f"Consistent strengths identified: {', '.join(strengths[:3])}",
                supporting_count=sum(1 for r in records if r.strengths),
            ))

        development = top_theme_names([r.areas_for_development for r in records], limit=self.config.theme_limit)
        if development:
            insights.append(Insight(
                kind=InsightKind.CONCERN,
                text=f"Common development areas: {', '.join(development[:3])}",
                supporting_count=sum(1 for r in records if r.areas_for_development),
            ))

        return insights

    def recommendations(self, records: Sequence[ObservationRecord]) -> List[Insight]:
        recommendations = []

        teachers = aggregate(records, by_teacher)
        for key in sorted(teachers, key=lambda k: (self._teacher_name(teachers[k]), k)):
            bucket = teachers[key]
            average = bucket.average
            if average is None:
                continue
            name = self._teacher_name(bucket)

            if average < self.config.support_threshold:
                issues = top_theme_names([r.areas_for_development for r in bucket.records], limit=self.config.theme_limit)
                text = f"Provide targeted support for {name}"
                if issues:
                    text += f" focusing on {' and '.join(issues)}"
                recommendations.append(Insight(
                    kind=InsightKind.RECOMMENDATION,
                    text=text,
                    supporting_count=bucket.graded_count,
                ))
            if average > self.config.mentor_threshold:
                recommendations.append(Insight(
                    kind=InsightKind.RECOMMENDATION,
                    text=f"Consider {name} as a mentor for peer learning opportunities",
                    supporting_count=bucket.graded_count,
                ))

        for subject, bucket in aggregate(records, by_subject).items():
            issues = top_theme_names([r.areas_for_development for r in bucket.records], limit=2)
            if issues:
                recommendations.append(Insight(
                    kind=InsightKind.RECOMMENDATION,
                    text=f"{subject} department should focus on: {' and '.join(issues)}",
                    supporting_count=sum(1 for r in bucket.records if r.areas_for_development),
                ))

        development = top_theme_names([r.areas_for_development for r in records], limit=self.config.theme_limit)
        for theme, text in WHOLE_SCHOOL_THEMES.items():
            if theme in development:
                recommendations.append(Insight(kind=InsightKind.RECOMMENDATION, text=text))

        return recommendations

    def trend_statements(self, records: Sequence[ObservationRecord]) -> List[Insight]:
        trends = []

        comparison = compare_halves(
            ordered_scores(records),
            threshold=self.config.halves_threshold,
            min_points=self.config.halves_min_points,
        )
        if comparison:
            trends.append(Insight(
                kind=InsightKind.TREND,
                text=TREND_STATEMENTS[comparison.direction],
                supporting_count=len(ordered_scores(records)),
            ))

        key_stages = aggregate(records, by_key_stage)
        extremes = _extremes(key_stages)
        if extremes:
            (best, best_avg), (worst, worst_avg) = extremes
            if best_avg > worst_avg + self.config.key_stage_gap_threshold:
                trends.append(Insight(
                    kind=InsightKind.TREND,
                    text=f"{best} consistently outperforms other key stages, whilst {worst} requires additional focus",
                    supporting_count=key_stages[best].graded_count + key_stages[worst].graded_count,
                ))

        return trends

    def action_items(self, records: Sequence[ObservationRecord]) -> List[Insight]:
        items = []

        for record in records:
            if record.grade == Grade.INADEQUATE:
                items.append(Insight(
                    kind=InsightKind.RECOMMENDATION,
                    text=f"Schedule follow-up observation for {record.teacher_name or 'teacher'} within 4 weeks",
                    supporting_count=1,
                ))

        development = top_theme_names([r.areas_for_development for r in records], limit=1)
        if development:
            items.append(Insight(
                kind=InsightKind.RECOMMENDATION,
                text=f"Organise professional development session on {development[0]} by end of term",
            ))

        underperforming = [
            subject for subject, bucket in aggregate(records, by_subject).items()
            if bucket.average is not None and bucket.average < self.config.support_threshold
        ]
        if underperforming:
            items.append(Insight(
                kind=InsightKind.RECOMMENDATION,
                text=f"Develop improvement plan for {' and '.join(underperforming)} departments",
                supporting_count=len(underperforming),
            ))

        exemplars = []
        for record in records:
            if record.grade == Grade.OUTSTANDING and record.teacher_name and record.teacher_name not in exemplars:
                exemplars.append(record.teacher_name)
        if exemplars:
            named = exemplars[:self.config.max_exemplar_teachers]
            items.append(Insight(
                kind=InsightKind.RECOMMENDATION,
                text=f"Arrange peer observation opportunities with {' and '.join(named)}",
                supporting_count=len(named),
            ))

        return items

    @staticmethod
    def _teacher_name(bucket: AggregateBucket) -> str:
        return next((r.teacher_name for r in bucket.records if r.teacher_name), bucket.key)
