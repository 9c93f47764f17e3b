"""
Grouping and aggregation of observation records.

Partitions records by a dimension (subject, key stage, observation type,
teacher, observer, department or date bucket) and derives per-group counts,
grade tallies and averages. Every call builds fresh buckets from its input;
nothing is cached between calls.

Averaging policy: `total` counts every record so volumes stay honest, while
averages and grade tallies only use records with a resolvable score. An
ungraded record therefore never drags a mean towards zero.
"""

import logging
import statistics
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Set

from ..models.analytics import (
    CriteriaBreakdownRow,
    DistributionRow,
    GradeCounts,
    GradePercentages,
    ObserverRow,
    StaffAnalysis,
    StaffRow,
    SummaryStats,
    TrendPoint,
)
from ..models.observation import ObservationRecord
from .grades import Grade, classify_score
from .trends import (
    compare_halves,
    compare_periods,
    compare_recent_scores,
    compare_recent_window,
    moving_average,
    ordered_scores,
)


logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"

DEFAULT_CRITERIA = (
    "Planning & Preparation",
    "Teaching & Delivery",
    "Student Engagement",
    "Classroom Management",
    "Assessment & Feedback",
)

KeyFunction = Callable[[ObservationRecord], str]


@dataclass
class AggregateBucket:
    """Records sharing one dimension value, with their derived statistics."""
    key: str
    total: int = 0
    scores: List[float] = field(default_factory=list)
    grade_counts: GradeCounts = field(default_factory=GradeCounts)
    member_ids: Set[str] = field(default_factory=set)
    records: List[ObservationRecord] = field(default_factory=list)

    def add(self, record: ObservationRecord) -> None:
        self.total += 1
        self.records.append(record)
        if record.teacher_id:
            self.member_ids.add(record.teacher_id)

        if not record.is_graded:
            return
        self.scores.append(record.numeric_score)
        grade = record.grade
        if grade is not None:
            self.grade_counts.increment(grade)

    @property
    def graded_count(self) -> int:
        return len(self.scores)

    @property
    def average(self) -> Optional[float]:
        """Mean resolved score over gradeable records, None when there are none."""
        if not self.scores:
            return None
        return sum(self.scores) / len(self.scores)

    @property
    def average_duration(self) -> Optional[float]:
        durations = [r.lesson_duration for r in self.records if r.lesson_duration is not None]
        if not durations:
            return None
        return statistics.mean(durations)


# Key functions

def by_subject(record: ObservationRecord) -> str:
    return record.subject or UNKNOWN


def by_key_stage(record: ObservationRecord) -> str:
    return record.key_stage or UNKNOWN


def by_observation_type(record: ObservationRecord) -> str:
    return record.observation_type or UNKNOWN


def by_department(record: ObservationRecord) -> str:
    return record.department or UNKNOWN


def by_teacher(record: ObservationRecord) -> str:
    return record.teacher_id or UNKNOWN


def by_observer(record: ObservationRecord) -> str:
    return record.observer_id or record.observer_name or UNKNOWN


def date_bucket(moment: datetime, granularity: str = "day") -> str:
    """
    Calendar bucket label for a timestamp.

    day -> YYYY-MM-DD, week -> date of that week's Monday, month -> YYYY-MM.
    Timestamps are bucketed in UTC.
    """
    moment = moment.astimezone(timezone.utc)
    if granularity == "day":
        return moment.date().isoformat()
    if granularity == "week":
        monday = moment.date() - timedelta(days=moment.weekday())
        return monday.isoformat()
    if granularity == "month":
        return f"{moment.year:04d}-{moment.month:02d}"
    raise ValueError(f"Unknown date granularity: {granularity}")


def by_date(granularity: str = "day") -> KeyFunction:
    def key(record: ObservationRecord) -> str:
        return date_bucket(record.observation_date, granularity)
    return key


DIMENSIONS: Dict[str, KeyFunction] = {
    "subject": by_subject,
    "key_stage": by_key_stage,
    "observation_type": by_observation_type,
    "department": by_department,
    "teacher": by_teacher,
    "observer": by_observer,
    "date": by_date("day"),
}


def aggregate(records: Iterable[ObservationRecord], key_fn: KeyFunction) -> Dict[str, AggregateBucket]:
    """
    Partition records by key_fn and aggregate each group.

    Buckets come back in first-seen order. An empty input gives an empty dict.
    """
    buckets: Dict[str, AggregateBucket] = {}
    for record in records:
        key = key_fn(record)
        bucket = buckets.get(key)
        if bucket is None:
            bucket = buckets[key] = AggregateBucket(key=key)
        bucket.add(record)
    return buckets


def overall_bucket(records: Iterable[ObservationRecord], key: str = "all") -> AggregateBucket:
    """All records in a single bucket."""
    bucket = AggregateBucket(key=key)
    for record in records:
        bucket.add(record)
    return bucket


# Percentages over the visible subset

def _visible(buckets: Mapping[str, AggregateBucket], visible_keys: Optional[Iterable[str]]) -> List[AggregateBucket]:
    if visible_keys is None:
        return list(buckets.values())
    wanted = set(visible_keys)
    return [bucket for key, bucket in buckets.items() if key in wanted]


def share_percentages(
    buckets: Mapping[str, AggregateBucket],
    visible_keys: Optional[Iterable[str]] = None,
) -> Dict[str, float]:
    """
    Each visible bucket's share of the visible gradeable observations, in percent.

    Hidden buckets are left out entirely, so the shares of what remains sum
    to 100. Values are not rounded.
    """
    visible = _visible(buckets, visible_keys)
    gradeable_total = sum(bucket.graded_count for bucket in visible)
    if gradeable_total == 0:
        return {bucket.key: 0.0 for bucket in visible}
    return {bucket.key: bucket.graded_count / gradeable_total * 100 for bucket in visible}


def grade_percentages(
    buckets: Mapping[str, AggregateBucket],
    visible_keys: Optional[Iterable[str]] = None,
) -> GradePercentages:
    """Grade shares in percent over the gradeable observations of the visible buckets."""
    counts = GradeCounts()
    for bucket in _visible(buckets, visible_keys):
        counts = counts.merge(bucket.grade_counts)

    total = counts.total
    if total == 0:
        return GradePercentages()
    return GradePercentages(
        outstanding=counts.outstanding / total * 100,
        good=counts.good / total * 100,
        requires_improvement=counts.requires_improvement / total * 100,
        inadequate=counts.inadequate / total * 100,
        gradeable_total=total,
    )


def recompute_row_percentages(rows: Sequence[DistributionRow], visible_names: Iterable[str]) -> List[DistributionRow]:
    """
    Rows left visible after a presentation toggle, with shares recomputed.

    Used by the presentation layer when a series is switched off; the
    aggregation itself never looks at visibility.
    """
    wanted = set(visible_names)
    visible = [row for row in rows if row.name in wanted]
    gradeable_total = sum(row.graded_count for row in visible)
    result = []
    for row in visible:
        share = row.graded_count / gradeable_total * 100 if gradeable_total else 0.0
        result.append(row.model_copy(update={"percentage": round(share, 1)}))
    return result


# Row builders

def _round(value: Optional[float], digits: int = 2) -> Optional[float]:
    return None if value is None else round(value, digits)


def distribution_rows(
    buckets: Mapping[str, AggregateBucket],
    include_trend: bool = False,
    halves_threshold: float = 0.3,
    halves_min_points: int = 6,
) -> List[DistributionRow]:
    """
    Distribution rows for a categorical dimension, most observed first.

    With include_trend, each row carries the first-half/second-half trend of
    its own date-ordered scores when there are enough of them.
    """
    shares = share_percentages(buckets)
    rows = []
    for key, bucket in buckets.items():
        trend = None
        if include_trend:
            comparison = compare_halves(
                ordered_scores(bucket.records),
                threshold=halves_threshold,
                min_points=halves_min_points,
            )
            trend = comparison.direction if comparison else None

        rows.append(DistributionRow(
            name=key,
            count=bucket.total,
            graded_count=bucket.graded_count,
            percentage=round(shares[key], 1),
            average_score=_round(bucket.average),
            outstanding=bucket.grade_counts.outstanding,
            good=bucket.grade_counts.good,
            requires_improvement=bucket.grade_counts.requires_improvement,
            inadequate=bucket.grade_counts.inadequate,
            staff_count=len(bucket.member_ids),
            average_duration=_round(bucket.average_duration, 0),
            trend=trend,
        ))

    rows.sort(key=lambda row: -row.count)
    return rows


def criteria_breakdown(
    records: Iterable[ObservationRecord],
    criteria: Sequence[str] = DEFAULT_CRITERIA,
) -> List[CriteriaBreakdownRow]:
    """
    Grade tallies per teaching criterion.

    Each record's criterion score is banded with classify_score. The standard
    criteria always appear (zero rows when unobserved); any further criteria
    found on the records follow in first-seen order.
    """
    tallies: Dict[str, GradeCounts] = {name: GradeCounts() for name in criteria}
    for record in records:
        for name, score in record.criteria_scores.items():
            if score is None or score <= 0:
                continue
            tallies.setdefault(name, GradeCounts()).increment(classify_score(score))

    rows = []
    for name, counts in tallies.items():
        total = counts.total
        average = None
        if total:
            weighted = sum(counts.count(grade) * grade.points for grade in Grade)
            average = round(weighted / total, 2)
        rows.append(CriteriaBreakdownRow(
            criteria=name,
            outstanding=counts.outstanding,
            good=counts.good,
            requires_improvement=counts.requires_improvement,
            inadequate=counts.inadequate,
            total=total,
            average=average,
        ))
    return rows


def trend_points(
    records: Iterable[ObservationRecord],
    granularity: str = "day",
    moving_average_window: int = 7,
) -> List[TrendPoint]:
    """Date-bucketed series, oldest bucket first, with a trailing moving average."""
    buckets = aggregate(records, by_date(granularity))
    ordered = [buckets[key] for key in sorted(buckets)]
    averages = [bucket.average for bucket in ordered]
    smoothed = moving_average(averages, window=moving_average_window)

    return [
        TrendPoint(
            date=bucket.key,
            average_score=_round(bucket.average),
            total_observations=bucket.total,
            outstanding=bucket.grade_counts.outstanding,
            good=bucket.grade_counts.good,
            requires_improvement=bucket.grade_counts.requires_improvement,
            inadequate=bucket.grade_counts.inadequate,
            moving_average=_round(average),
        )
        for bucket, average in zip(ordered, smoothed)
    ]


def staff_rows(
    records: Iterable[ObservationRecord],
    as_of: Optional[datetime] = None,
    trend_window: int = 3,
    trend_threshold: float = 0.2,
) -> List[StaffRow]:
    """
    Per-teacher rows for the staff analysis table, ordered by teacher name.

    Subject and key stage come from the teacher's most recent observation.
    Development flags follow the grade bands of the teacher's average:
    Requires Improvement marks development needed, Inadequate an immediate
    concern.
    """
    as_of = as_of or datetime.now(timezone.utc)
    rows = []

    for teacher_id, bucket in aggregate(records, by_teacher).items():
        chronological = sorted(bucket.records, key=lambda r: r.observation_date)
        latest = chronological[-1]
        average = bucket.average
        direction, previous = compare_recent_scores(
            ordered_scores(chronological),
            window=trend_window,
            threshold=trend_threshold,
        )
        band = classify_score(average) if average is not None else None

        observers = []
        for record in chronological:
            name = record.observer_name or record.observer_id
            if name and name not in observers:
                observers.append(name)

        name = next((r.teacher_name for r in reversed(chronological) if r.teacher_name), None)
        department = next((r.department for r in reversed(chronological) if r.department), None)

        rows.append(StaffRow(
            id=teacher_id,
            name=name or UNKNOWN,
            department=department or UNKNOWN,
            subject=latest.subject or UNKNOWN,
            key_stage=latest.key_stage or UNKNOWN,
            total_observations=bucket.total,
            average_score=_round(average),
            last_observation_date=latest.observation_date,
            days_since_last_observation=max((as_of - latest.observation_date).days, 0),
            outstanding=bucket.grade_counts.outstanding,
            good=bucket.grade_counts.good,
            requires_improvement=bucket.grade_counts.requires_improvement,
            inadequate=bucket.grade_counts.inadequate,
            trend=direction,
            previous_score=_round(previous),
            observed_by=observers,
            needs_development=band == Grade.REQUIRES_IMPROVEMENT,
            immediate_concern=band == Grade.INADEQUATE,
        ))

    rows.sort(key=lambda row: (row.name.lower(), row.id))
    return rows


def observer_rows(records: Iterable[ObservationRecord]) -> List[ObserverRow]:
    """Per-observer rows, busiest observer first. Records without an observer are skipped."""
    observed = [r for r in records if r.observer_id or r.observer_name]
    rows = []
    for key, bucket in aggregate(observed, by_observer).items():
        name = next((r.observer_name for r in bucket.records if r.observer_name), key)
        departments = sorted({r.department for r in bucket.records if r.department})
        rows.append(ObserverRow(
            name=name,
            observations_count=bucket.total,
            average_score=_round(bucket.average),
            departments=departments,
        ))
    rows.sort(key=lambda row: -row.observations_count)
    return rows


def staff_analysis(
    records: Sequence[ObservationRecord],
    as_of: Optional[datetime] = None,
    trend_window: int = 3,
    trend_threshold: float = 0.2,
) -> StaffAnalysis:
    return StaffAnalysis(
        staff_data=staff_rows(records, as_of=as_of, trend_window=trend_window, trend_threshold=trend_threshold),
        observer_data=observer_rows(records),
    )


def summary_stats(
    records: Sequence[ObservationRecord],
    previous_records: Optional[Sequence[ObservationRecord]] = None,
    granularity: str = "day",
    recent_window: int = 7,
    recent_change_threshold_pct: float = 2.0,
) -> SummaryStats:
    """
    Headline statistics for a scope.

    previous_records are the observations of the preceding period; pass None
    when that period is unknown and the comparison stays empty. recent_trend
    compares the last recent_window date buckets with the ones before them.
    """
    bucket = overall_bucket(records)
    previous_average = None
    if previous_records is not None:
        previous_average = overall_bucket(previous_records).average

    current = _round(bucket.average)
    previous = _round(previous_average)
    comparison = compare_periods(current, previous)
    if comparison.change is not None:
        comparison = comparison.model_copy(update={
            "change": _round(comparison.change),
            "change_percentage": _round(comparison.change_percentage, 1),
        })

    points = trend_points(records, granularity=granularity, moving_average_window=1)
    recent = compare_recent_window(
        [p.average_score for p in points],
        window=recent_window,
        threshold_pct=recent_change_threshold_pct,
    )
    recent = recent.model_copy(update={
        "percentage": _round(recent.percentage, 1),
        "recent_average": _round(recent.recent_average),
        "previous_average": _round(recent.previous_average),
    })

    return SummaryStats(
        total_observations=bucket.total,
        graded_observations=bucket.graded_count,
        average_score=current,
        total_teachers=len({r.teacher_id for r in records if r.teacher_id}),
        total_observers=len({r.observer_id or r.observer_name for r in records if r.observer_id or r.observer_name}),
        grade_distribution=bucket.grade_counts.model_copy(),
        period_comparison=comparison,
        recent_trend=recent,
    )
