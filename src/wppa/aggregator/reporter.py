"""
Aggregator / Reporter.

Reduces the raw per-request logs of a RequestContext into dashboard-ready
views, and owns the sampled end-of-request persistence step.

Responsibilities
----------------
- Current request overview (time, queries, memory, top-N components)
- Phase summary and its JSON chart feed
- Query views (grouped by type, slowest N)
- Per-component hook totals
- Sampling decision + PersistedSample construction
- Fire-and-forget write to the sample store
"""

import random
from typing import Any, Dict, List, Optional

from wppa.aggregator.sampling import should_persist_sample
from wppa.aggregator.schema import (
    PAGE_LOAD_LABEL,
    ComponentShare,
    PersistedSample,
    RequestSummary,
)
from wppa.context import RequestContext
from wppa.instrumentation.hooks import ComponentPerformanceTotal
from wppa.instrumentation.phases import PhaseRecord, PhaseShare
from wppa.instrumentation.queries import QueryTiming, QueryTypeGroup
from wppa.loggers.error_log import get_error_logger


def build_persisted_sample(
    page_url: str,
    execution_time: float,
    memory_usage: int,
    query_count: int,
    query_time: float,
    component_label: str = PAGE_LOAD_LABEL,
) -> PersistedSample:
    return PersistedSample(
        page_url=page_url or "/",
        component_label=component_label,
        execution_time=float(execution_time),
        memory_usage=int(memory_usage),
        query_count=int(query_count),
        query_time=float(query_time),
    )


class Reporter:
    def __init__(
        self,
        context: RequestContext,
        store=None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.context = context
        self.settings = context.settings
        self.store = store
        self._rng = rng or random.Random()
        self.logger = get_error_logger("Reporter")

    def _total_time(self, total_time: Optional[float]) -> float:
        return self.context.total_time() if total_time is None else float(total_time)

    def per_component_totals(self) -> Dict[str, ComponentPerformanceTotal]:
        profiler = self.context.hook_profiler
        if profiler is None:
            return {}
        return profiler.per_component_totals()

    def top_components(self, n: Optional[int] = None, total_time: Optional[float] = None) -> List[ComponentShare]:
        n = self.settings.top_n_components if n is None else n
        total = self._total_time(total_time)
        out: List[ComponentShare] = []
        for t in list(self.per_component_totals().values())[: max(0, n)]:
            pct = (t.total_time / total * 100.0) if total > 0 else 0.0
            out.append(
                ComponentShare(
                    name=t.component,
                    time=t.total_time,
                    percentage=pct,
                    hook_count=t.hook_count,
                )
            )
        return out

    def current_request_summary(self) -> RequestSummary:
        total = self.context.total_time()
        return RequestSummary(
            total_time=total,
            query_count=self.context.queries.count,
            query_time=self.context.queries.total_time,
            memory_usage=self.context.clock.peak_memory(),
            top_components=self.top_components(total_time=total),
        )

    def phase_summary(self, total_time: Optional[float] = None) -> List[PhaseShare]:
        return self.context.phases.summarize(self._total_time(total_time))

    def phase_chart_data(self, total_time: Optional[float] = None) -> List[Dict[str, Any]]:
        """[{label, value (ms), percentage}] for charting; JSON-serializable."""
        return [share.to_wire() for share in self.phase_summary(total_time)]

    def slowest_phase(self) -> Optional[PhaseRecord]:
        return self.context.phases.slowest_phase()

    def grouped_queries(self) -> Dict[str, QueryTypeGroup]:
        return self.context.queries.group_by_type()

    def slowest_queries(self, n: Optional[int] = None) -> List[QueryTiming]:
        n = self.settings.num_slow_queries if n is None else n
        return self.context.queries.slowest(n)

    def should_persist_sample(self, sampling_rate_percent: Optional[int] = None) -> bool:
        rate = self.settings.sample_rate if sampling_rate_percent is None else sampling_rate_percent
        return should_persist_sample(rate, self._rng)

    def build_persisted_sample(self) -> PersistedSample:
        summary = self.current_request_summary()
        return build_persisted_sample(
            page_url=self.context.page_url,
            execution_time=summary.total_time,
            memory_usage=summary.memory_usage,
            query_count=summary.query_count,
            query_time=summary.query_time,
        )

    def save_performance_data(self) -> Optional[PersistedSample]:
        """
        End-of-request persistence.

        Skipped when tracking is off, when the sampling draw says no, or when
        there is no store. Store failures are logged and dropped.
        """
        if not self.settings.enable_tracking or self.store is None:
            return None
        if not self.should_persist_sample():
            return None

        try:
            sample = self.build_persisted_sample()
            self.store.insert(sample)
            return sample
        except Exception as e:
            self.logger.error(f"[WPPA] Failed to persist sample for {self.context.page_url}: {e}")
            return None
