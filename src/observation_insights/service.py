"""
Analytics service facade.

Exposes the dashboard operations over an ObservationSource: every call
resolves the caller's filters into a FilterScope, narrows it to what the
actor may see, fetches the matching observations and runs the pure
analytics over them.

Failure policy:
- A fetch failure in a single dashboard getter is logged and the getter
  returns its empty shape.
- get_analytics_data computes dimensions concurrently; each dimension
  succeeds or fails on its own.
- Insight and report generation return a ServiceResult carrying the error.
- Malformed filters (InvalidScopeError) and permission violations
  (PermissionDeniedError) are raised before anything is queried.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Union

from pydantic import BaseModel, Field

from .analytics.aggregation import (
    aggregate,
    by_department,
    by_key_stage,
    by_observation_type,
    by_subject,
    criteria_breakdown,
    distribution_rows,
    staff_analysis,
    summary_stats,
    trend_points,
)
from .analytics.insights import InsightGenerator
from .config import AnalyticsConfig, get_settings
from .database.sources import ObservationSource
from .models.analytics import (
    CriteriaBreakdownRow,
    DistributionRow,
    StaffAnalysis,
    SummaryStats,
    TrendPoint,
)
from .models.observation import ObservationRecord
from .models.permissions import ActorScope
from .models.report import AnalysisType, Report
from .models.scope import FilterScope
from .reports.assembler import ReportAssembler
from .reports.export import dataset_to_csv, report_to_csv, sectioned_csv
from .utils.llm import NarrativeGenerator


logger = logging.getLogger(__name__)

Filters = Union[FilterScope, Mapping[str, Any], None]


class ServiceResult(BaseModel):
    """Standard result format for service operations."""
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    execution_time_ms: float = 0.0


class DimensionResult(BaseModel):
    """Outcome of one dashboard dimension."""
    name: str
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None


class AnalyticsDashboard(BaseModel):
    """All dashboard dimensions for one scope, each with its own outcome."""
    scope: Dict[str, Any] = Field(default_factory=dict)
    dimensions: Dict[str, DimensionResult] = Field(default_factory=dict)

    @property
    def failed(self) -> List[str]:
        return [name for name, result in self.dimensions.items() if not result.success]

    def get(self, name: str) -> Optional[Any]:
        result = self.dimensions.get(name)
        return result.data if result and result.success else None


class AnalyticsService:
    """Dashboard analytics, insights and reports over an observation source."""

    def __init__(
        self,
        source: ObservationSource,
        narrative: Optional[NarrativeGenerator] = None,
        config: Optional[AnalyticsConfig] = None,
        assembler: Optional[ReportAssembler] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.source = source
        self.narrative = narrative
        self.config = config or get_settings().analytics
        self.assembler = assembler or ReportAssembler()
        self.insight_generator = InsightGenerator(self.config)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # Scope and fetching

    def resolve_scope(self, filters: Filters = None, actor: Optional[ActorScope] = None) -> FilterScope:
        """
        Turn caller filters into a validated scope narrowed to the actor.

        Raises:
            InvalidScopeError: if the filters are malformed
            PermissionDeniedError: if the actor asks for other teachers' data
        """
        scope = filters if isinstance(filters, FilterScope) else FilterScope.from_filters(filters)
        if actor is not None:
            scope = actor.restrict(scope)
        return scope

    async def _fetch(self, scope: FilterScope, operation: str, strict: bool = False) -> List[ObservationRecord]:
        try:
            return await self.source.fetch_observations(scope)
        except Exception as e:
            if strict:
                raise
            logger.error(
                f"Fetch failed for {operation}, returning empty result: {e}",
                extra={"operation": operation, "scope": scope.describe()},
                exc_info=True,
            )
            return []

    # Dashboard dimensions

    async def _criteria(self, scope: FilterScope, strict: bool = False) -> List[CriteriaBreakdownRow]:
        return criteria_breakdown(await self._fetch(scope, "criteria_breakdown", strict))

    async def _trends(self, scope: FilterScope, strict: bool = False) -> List[TrendPoint]:
        records = await self._fetch(scope, "observation_trends", strict)
        return trend_points(
            records,
            granularity=self.config.date_granularity,
            moving_average_window=self.config.moving_average_window,
        )

    async def _distribution(self, scope: FilterScope, key_fn, operation: str, include_trend: bool = False,
                            strict: bool = False) -> List[DistributionRow]:
        records = await self._fetch(scope, operation, strict)
        return distribution_rows(
            aggregate(records, key_fn),
            include_trend=include_trend,
            halves_threshold=self.config.halves_threshold,
            halves_min_points=self.config.halves_min_points,
        )

    async def _staff(self, scope: FilterScope, strict: bool = False) -> StaffAnalysis:
        records = await self._fetch(scope, "staff_analysis", strict)
        return staff_analysis(
            records,
            as_of=self._clock(),
            trend_window=self.config.staff_trend_window,
            trend_threshold=self.config.staff_trend_threshold,
        )

    async def _summary(self, scope: FilterScope, strict: bool = False) -> SummaryStats:
        records = await self._fetch(scope, "summary_stats", strict)
        previous_records = None
        previous_scope = scope.previous_period()
        if previous_scope is not None:
            try:
                previous_records = await self.source.fetch_observations(previous_scope)
            except Exception as e:
                logger.warning(f"Previous period unavailable, comparison left empty: {e}")
        return summary_stats(
            records,
            previous_records,
            granularity=self.config.date_granularity,
            recent_window=self.config.recent_window,
            recent_change_threshold_pct=self.config.recent_change_threshold_pct,
        )

    async def get_criteria_breakdown(self, filters: Filters = None, actor: Optional[ActorScope] = None) -> List[CriteriaBreakdownRow]:
        return await self._criteria(self.resolve_scope(filters, actor))

    async def get_observation_trends(self, filters: Filters = None, actor: Optional[ActorScope] = None) -> List[TrendPoint]:
        return await self._trends(self.resolve_scope(filters, actor))

    async def get_subject_distribution(self, filters: Filters = None, actor: Optional[ActorScope] = None) -> List[DistributionRow]:
        return await self._distribution(self.resolve_scope(filters, actor), by_subject, "subject_distribution", include_trend=True)

    async def get_type_distribution(self, filters: Filters = None, actor: Optional[ActorScope] = None) -> List[DistributionRow]:
        return await self._distribution(self.resolve_scope(filters, actor), by_observation_type, "type_distribution")

    async def get_key_stage_analysis(self, filters: Filters = None, actor: Optional[ActorScope] = None) -> List[DistributionRow]:
        return await self._distribution(self.resolve_scope(filters, actor), by_key_stage, "key_stage_analysis")

    async def get_department_distribution(self, filters: Filters = None, actor: Optional[ActorScope] = None) -> List[DistributionRow]:
        return await self._distribution(self.resolve_scope(filters, actor), by_department, "department_distribution")

    async def get_staff_analysis(self, filters: Filters = None, actor: Optional[ActorScope] = None) -> StaffAnalysis:
        """Per-teacher and per-observer tables. Admin only when an actor is given."""
        if actor is not None:
            actor.require_admin("staff analysis")
        return await self._staff(self.resolve_scope(filters, actor))

    async def get_summary_stats(self, filters: Filters = None, actor: Optional[ActorScope] = None) -> SummaryStats:
        """Headline figures, compared with the equal-length period before the date range."""
        return await self._summary(self.resolve_scope(filters, actor))

    async def get_analytics_data(self, filters: Filters = None, actor: Optional[ActorScope] = None) -> AnalyticsDashboard:
        """
        Every dashboard dimension, computed concurrently.

        A failing dimension is reported in its DimensionResult and does not
        affect the others.
        """
        if actor is not None:
            actor.require_admin("analytics dashboard")
        scope = self.resolve_scope(filters, actor)

        jobs: Dict[str, Awaitable[Any]] = {
            "criteria_breakdown": self._criteria(scope, strict=True),
            "observation_trends": self._trends(scope, strict=True),
            "subject_distribution": self._distribution(scope, by_subject, "subject_distribution", include_trend=True, strict=True),
            "type_distribution": self._distribution(scope, by_observation_type, "type_distribution", strict=True),
            "key_stage_analysis": self._distribution(scope, by_key_stage, "key_stage_analysis", strict=True),
            "department_distribution": self._distribution(scope, by_department, "department_distribution", strict=True),
            "staff_analysis": self._staff(scope, strict=True),
            "summary_stats": self._summary(scope, strict=True),
        }
        results = await asyncio.gather(*jobs.values(), return_exceptions=True)

        dimensions = {}
        for name, result in zip(jobs.keys(), results):
            if isinstance(result, Exception):
                logger.error(f"Dashboard dimension {name} failed: {result}", exc_info=result)
                dimensions[name] = DimensionResult(name=name, success=False, error=str(result))
            else:
                dimensions[name] = DimensionResult(name=name, success=True, data=result)

        dashboard = AnalyticsDashboard(scope=scope.describe(), dimensions=dimensions)
        if dashboard.failed:
            logger.warning(f"Dashboard built with failed dimensions: {', '.join(dashboard.failed)}")
        return dashboard

    # Insights and reports

    async def generate_insights(self, filters: Filters = None, actor: Optional[ActorScope] = None) -> ServiceResult:
        """
        Rule-based insights for a scope.

        No data is a successful, empty result; a failed fetch is a failed
        result.
        """
        start_time = time.time()
        scope = self.resolve_scope(filters, actor)

        try:
            records = await self._fetch(scope, "insights", strict=True)
        except Exception as e:
            logger.error(f"Insight generation failed: {e}", exc_info=True)
            return ServiceResult(
                success=False,
                error=f"Could not load observations: {e}",
                execution_time_ms=(time.time() - start_time) * 1000,
            )

        bundle = self.insight_generator.generate(records)
        return ServiceResult(
            success=True,
            data=bundle.as_text(),
            metadata={"observation_count": len(records), "scope": scope.describe()},
            execution_time_ms=(time.time() - start_time) * 1000,
        )

    async def generate_report(
        self,
        filters: Filters = None,
        analysis_type: Union[str, AnalysisType] = AnalysisType.REPORT,
        actor: Optional[ActorScope] = None,
    ) -> ServiceResult:
        """
        Assemble a report for a scope.

        With a narrative generator the model writes the narrative; without
        one the narrative is written from the rule-based insights. Fetch and
        narrative failures give a failed result marked retryable.
        """
        start_time = time.time()
        scope = self.resolve_scope(filters, actor)
        type_key = analysis_type.value if isinstance(analysis_type, AnalysisType) else str(analysis_type)

        def failure(message: str) -> ServiceResult:
            return ServiceResult(
                success=False,
                error=message,
                metadata={"retryable": True, "analysis_type": type_key},
                execution_time_ms=(time.time() - start_time) * 1000,
            )

        try:
            records = await self._fetch(scope, "report", strict=True)
        except Exception as e:
            logger.error(f"Report generation failed while loading observations: {e}", exc_info=True)
            return failure(f"Could not load observations: {e}")

        bundle = self.insight_generator.generate(records)

        narrative_text = None
        if self.narrative is not None:
            prompt = self.assembler.render_prompt(records, scope, type_key, bundle)
            try:
                narrative_text = await self.narrative.generate_narrative(prompt, {"analysis_type": type_key})
            except Exception as e:
                logger.error(f"Narrative generation failed: {e}", exc_info=True)
                return failure(f"Failed to generate report: {e}")

        report = self.assembler.assemble(
            records,
            analysis_type=type_key,
            scope=scope,
            bundle=bundle,
            narrative=narrative_text,
            generated_at=self._clock(),
        )
        return ServiceResult(
            success=True,
            data=report,
            metadata={"observation_count": len(records), "analysis_type": type_key},
            execution_time_ms=(time.time() - start_time) * 1000,
        )

    # Export

    def export_to_csv(self, item: Union[Report, AnalyticsDashboard, StaffAnalysis, SummaryStats, Sequence[Any]]) -> str:
        """
        CSV for a report, the dashboard, or a single dataset.

        Dashboards export one block per successful dimension.
        """
        if isinstance(item, Report):
            return report_to_csv(item)
        if isinstance(item, AnalyticsDashboard):
            datasets = {}
            for name, result in item.dimensions.items():
                if result.success:
                    datasets.update(_datasets(name, result.data))
            return sectioned_csv(datasets)
        if isinstance(item, (StaffAnalysis, SummaryStats)):
            return sectioned_csv(_datasets(type(item).__name__, item))
        return dataset_to_csv(item)


def _summary_rows(stats: SummaryStats) -> List[Dict[str, Any]]:
    counts = stats.grade_distribution
    comparison = stats.period_comparison
    return [
        {"metric": "total_observations", "value": stats.total_observations},
        {"metric": "graded_observations", "value": stats.graded_observations},
        {"metric": "average_score", "value": stats.average_score},
        {"metric": "total_teachers", "value": stats.total_teachers},
        {"metric": "total_observers", "value": stats.total_observers},
        {"metric": "outstanding", "value": counts.outstanding},
        {"metric": "good", "value": counts.good},
        {"metric": "requires_improvement", "value": counts.requires_improvement},
        {"metric": "inadequate", "value": counts.inadequate},
        {"metric": "previous_period_average", "value": comparison.previous_period},
        {"metric": "change", "value": comparison.change},
        {"metric": "change_percentage", "value": comparison.change_percentage},
        {"metric": "recent_trend", "value": stats.recent_trend.direction.value},
        {"metric": "recent_change_percentage", "value": stats.recent_trend.percentage},
    ]


def _datasets(name: str, data: Any) -> Dict[str, Sequence[Any]]:
    if isinstance(data, StaffAnalysis):
        return {"staff_data": data.staff_data, "observer_data": data.observer_data}
    if isinstance(data, SummaryStats):
        return {"summary_stats": _summary_rows(data)}
    return {name: data}
