"""
WPPA runtime

Wires settings, the per-request context, the reporter and the sample store
for each request the host serves.

Responsibilities:
- Build a fresh RequestContext per request and attach it to the host registry
- Persist a sampled summary when the host fires "shutdown"
- Run the retention cleanup the host schedules
- Append the per-request panels to the logs dir when logging is enabled
- Never let an analyser failure reach the host
"""

import os
import random
from typing import Any, Callable, Optional

from wppa.aggregator.reporter import Reporter
from wppa.context import SHUTDOWN_HOOK, RequestContext
from wppa.database.sample_store import SampleStore
from wppa.instrumentation.provenance import ProvenanceCache
from wppa.loggers.error_log import get_error_logger, setup_error_logger
from wppa.renderers.request_renderer import (
    PhaseRenderer,
    QueryAnalysisRenderer,
    RequestOverviewRenderer,
)
from wppa.settings import WPPASettings
from wppa.utils.clock import EventClock

CLEANUP_HOOK = "wppa_cleanup_old_data"
REQUEST_SUMMARY_FILE = "wppa_request_summary.txt"


class PerformanceAnalyser:
    def __init__(
        self,
        settings: Optional[WPPASettings] = None,
        store: Optional[SampleStore] = None,
        clock_factory: Callable[[], EventClock] = EventClock,
        cache: Optional[ProvenanceCache] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.settings = settings or WPPASettings()
        setup_error_logger(self.settings.logs_dir if self.settings.enable_logging else None)
        self.logger = get_error_logger("PerformanceAnalyser")

        if store is None:
            store = SampleStore.load(self.settings.data_dir) if self.settings.data_dir else SampleStore()
        self.store = store
        self._clock_factory = clock_factory
        self._cache = cache
        self._rng = rng or random.Random()

        self.last_context: Optional[RequestContext] = None
        self.last_reporter: Optional[Reporter] = None

    def _safe(self, label: str, fn: Callable[[], Any]) -> Any:
        try:
            return fn()
        except Exception as e:
            self.logger.error(f"[WPPA] {label}: {e}")
            return None

    def begin_request(self, registry, page_url: str = "/") -> RequestContext:
        """Start instrumenting one request served through `registry`."""
        context = RequestContext(
            settings=self.settings,
            page_url=page_url,
            clock=self._clock_factory(),
            cache=self._cache,
        )
        reporter = Reporter(context, store=self.store, rng=self._rng)
        self.last_context = context
        self.last_reporter = reporter

        if not self.settings.enable_tracking:
            return context

        self._safe("Failed to attach request context", lambda: context.attach(registry))

        def on_shutdown(*_: Any) -> None:
            self._safe("Failed to save performance data", reporter.save_performance_data)
            self._safe("Failed to log request summary", lambda: self.log_request_summary(reporter))
            self._safe("Failed to detach request context", context.detach)
            registry.remove_action(SHUTDOWN_HOOK, on_shutdown, registry.LAST_PRIORITY)

        # After RequestContext's own shutdown handler: registered later, same priority
        registry.add_action(SHUTDOWN_HOOK, on_shutdown, registry.LAST_PRIORITY, accepted_args=0)
        return context

    def log_request_summary(self, reporter: Reporter) -> Optional[str]:
        """
        Append the current-request panels to `<logs_dir>/wppa_request_summary.txt`.
        Only when logging is enabled; returns the path written.
        """
        if not self.settings.enable_logging or not self.settings.logs_dir:
            return None
        os.makedirs(self.settings.logs_dir, exist_ok=True)
        path = os.path.join(self.settings.logs_dir, REQUEST_SUMMARY_FILE)
        context = reporter.context
        with open(path, "a", encoding="utf-8") as f:
            f.write(f"== {context.request_id} {context.page_url}\n")
        for renderer in (
            RequestOverviewRenderer(reporter),
            PhaseRenderer(reporter),
            QueryAnalysisRenderer(reporter),
        ):
            renderer.log_summary(path)
        return path

    def register_cleanup(self, registry) -> None:
        """Subscribe the retention cleanup to the scheduled cleanup hook."""
        registry.add_action(CLEANUP_HOOK, self._on_cleanup, 10, accepted_args=0)

    def _on_cleanup(self, *_: Any) -> None:
        self.cleanup_old_data()

    def cleanup_old_data(self, now: Optional[float] = None) -> int:
        removed = self._safe(
            "Retention cleanup failed",
            lambda: self.store.cleanup(self.settings.data_retention_days, now=now),
        )
        return removed or 0
