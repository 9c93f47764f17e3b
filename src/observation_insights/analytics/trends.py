"""
Trend analysis over date-ordered observation scores.

Provides the comparisons shown on the dashboard and used by the insight
rules:
- first half versus second half of a series
- the most recent window versus the window before it
- a trailing simple moving average
- a short-run comparison for individual staff members
- current versus previous reporting period
"""

import logging
import statistics
from typing import Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from ..models.analytics import HalvesComparison, PeriodComparison, TrendDirection, WindowComparison
from ..models.observation import ObservationRecord


logger = logging.getLogger(__name__)


def ordered_scores(records: Iterable[ObservationRecord]) -> List[float]:
    """Gradeable scores of the records, oldest observation first."""
    graded = [record for record in records if record.is_graded]
    graded.sort(key=lambda record: record.observation_date)
    return [record.numeric_score for record in graded]


def compare_halves(
    scores: Sequence[float],
    threshold: float = 0.3,
    min_points: int = 6,
) -> Optional[HalvesComparison]:
    """
    Compare the mean of the first half of a series with the second half.

    The series is split at len // 2. Direction is UP when the second half is
    higher by more than `threshold` scale points, DOWN when lower by more than
    `threshold`, otherwise STABLE.

    Returns:
        HalvesComparison, or None when the series has fewer than `min_points`
    """
    if len(scores) < min_points:
        return None

    midpoint = len(scores) // 2
    first_avg = statistics.mean(scores[:midpoint])
    second_avg = statistics.mean(scores[midpoint:])
    difference = second_avg - first_avg

    if difference > threshold:
        direction = TrendDirection.UP
    elif difference < -threshold:
        direction = TrendDirection.DOWN
    else:
        direction = TrendDirection.STABLE

    return HalvesComparison(
        direction=direction,
        first_half_average=first_avg,
        second_half_average=second_avg,
        difference=difference,
    )


def compare_recent_window(
    values: Sequence[Optional[float]],
    window: int = 7,
    threshold_pct: float = 2.0,
) -> WindowComparison:
    """
    Compare the mean of the last `window` points against the `window` before.

    The percentage change is (recent - previous) / previous * 100. With fewer
    than 2 * window points there is no previous window and the result is
    STABLE with a 0% change. Points that are None (buckets without a graded
    observation) are left out of both means.
    """
    points = list(values)
    recent_values = [v for v in points[-window:] if v is not None]
    recent_avg = statistics.mean(recent_values) if recent_values else None

    if len(points) < 2 * window:
        return WindowComparison(recent_average=recent_avg)

    previous_values = [v for v in points[-2 * window:-window] if v is not None]
    if not previous_values or recent_avg is None:
        return WindowComparison(recent_average=recent_avg)

    previous_avg = statistics.mean(previous_values)
    if previous_avg == 0:
        return WindowComparison(recent_average=recent_avg, previous_average=previous_avg)

    percentage = (recent_avg - previous_avg) / previous_avg * 100
    if percentage > threshold_pct:
        direction = TrendDirection.UP
    elif percentage < -threshold_pct:
        direction = TrendDirection.DOWN
    else:
        direction = TrendDirection.STABLE

    return WindowComparison(
        direction=direction,
        percentage=percentage,
        recent_average=recent_avg,
        previous_average=previous_avg,
    )


def moving_average(values: Sequence[Optional[float]], window: int = 7) -> List[Optional[float]]:
    """
    Trailing simple moving average.

    The first window - 1 positions have no average and come back as None, as
    does any position whose window contains a missing value.
    """
    if not values:
        return []
    series = pd.Series([float("nan") if v is None else float(v) for v in values], dtype="float64")
    rolled = series.rolling(window=window, min_periods=window).mean()
    return [None if pd.isna(value) else float(value) for value in rolled]


def compare_recent_scores(
    scores: Sequence[float],
    window: int = 3,
    threshold: float = 0.2,
) -> Tuple[TrendDirection, Optional[float]]:
    """
    Short-run trend for one staff member.

    Compares the mean of the last `window` scores with the `window` scores
    before them.

    Returns:
        (direction, previous_average); previous_average is None when there
        are no earlier scores, in which case the direction is STABLE
    """
    if not scores:
        return TrendDirection.STABLE, None

    recent = list(scores[-window:])
    older = list(scores[-2 * window:-window]) if len(scores) > window else []
    if not older:
        return TrendDirection.STABLE, None

    recent_avg = statistics.mean(recent)
    older_avg = statistics.mean(older)

    if recent_avg > older_avg + threshold:
        return TrendDirection.UP, older_avg
    if recent_avg < older_avg - threshold:
        return TrendDirection.DOWN, older_avg
    return TrendDirection.STABLE, older_avg


def compare_periods(current: Optional[float], previous: Optional[float]) -> PeriodComparison:
    """
    Compare the current period's average with the previous period's.

    A missing previous period stays missing; it is never estimated.
    """
    if current is None or previous is None:
        return PeriodComparison(current_period=current, previous_period=previous)

    change = current - previous
    change_percentage = (change / previous * 100) if previous else None
    return PeriodComparison(
        current_period=current,
        previous_period=previous,
        change=change,
        change_percentage=change_percentage,
    )
