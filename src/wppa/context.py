"""
Per-request instrumentation context.

One RequestContext is built for each request and passed explicitly to
whatever needs it (reporter, renderers). It owns the clock and the three
trackers, and knows how to subscribe them to a host registry.

Every callback handed to the host goes through `_guard`, so an
instrumentation failure is logged and never reaches the page render.
"""

from typing import Any, Callable, List, Optional, Tuple

from wppa.instrumentation.hooks import HookProfiler
from wppa.instrumentation.phases import PhaseTracker
from wppa.instrumentation.provenance import PathClassifier, ProvenanceCache
from wppa.instrumentation.queries import QueryTimingLog
from wppa.loggers.error_log import get_error_logger
from wppa.session import generate_request_id
from wppa.settings import WPPASettings
from wppa.utils.clock import EventClock

# WordPress request lifecycle checkpoints, in firing order
DEFAULT_PHASE_HOOKS: Tuple[str, ...] = (
    "muplugins_loaded",
    "plugins_loaded",
    "setup_theme",
    "after_setup_theme",
    "init",
    "wp_loaded",
    "wp",
    "template_redirect",
    "wp_head",
    "wp_footer",
)

QUERY_START_HOOK = "query"
QUERY_END_HOOK = "query_end"
SHUTDOWN_HOOK = "shutdown"


class RequestContext:
    def __init__(
        self,
        settings: Optional[WPPASettings] = None,
        page_url: str = "/",
        clock: Optional[EventClock] = None,
        cache: Optional[ProvenanceCache] = None,
        phase_hooks: Tuple[str, ...] = DEFAULT_PHASE_HOOKS,
        request_id: Optional[str] = None,
    ) -> None:
        self.settings = settings or WPPASettings()
        self.page_url = page_url or "/"
        self.request_id = request_id or generate_request_id()
        self.clock = clock or EventClock()
        self.phase_hooks = tuple(phase_hooks)
        self.logger = get_error_logger("RequestContext")

        self.started_at = self.clock.now()
        self.ended_at: Optional[float] = None

        self.classifier = PathClassifier(
            plugins_dir=self.settings.plugins_dir,
            themes_dir=self.settings.themes_dir,
            core_dir=self.settings.core_dir,
        )
        self.phases = PhaseTracker(self.clock)
        self.queries = QueryTimingLog(
            self.clock,
            plugins_dir=self.settings.plugins_dir,
            record_timings=self.settings.enable_query_tracking,
        )
        self.hook_profiler: Optional[HookProfiler] = None
        if self.settings.enable_hook_profiling:
            self.hook_profiler = HookProfiler(
                clock=self.clock,
                classifier=self.classifier,
                cache=cache,
                reserved_prefixes=(self.settings.reserved_hook_prefix,),
            )

        self._registry = None
        self._subscriptions: List[Tuple[str, Callable[..., Any], int]] = []

    @property
    def is_finished(self) -> bool:
        return self.ended_at is not None

    def total_time(self) -> float:
        end = self.ended_at if self.ended_at is not None else self.clock.now()
        return max(0.0, end - self.started_at)

    def _guard(self, label: str, fn: Callable[..., Any], passthrough: bool = False):
        def wrapped(*args: Any) -> Any:
            try:
                result = fn(*args)
            except Exception as e:
                self.logger.error(f"[WPPA] {label} failed: {e}")
                result = None
            if passthrough:
                return args[0] if args else None
            return result

        return wrapped

    def _on_phase(self, name: str) -> None:
        self.phases.on_phase_start(name)
        # Most platforms only report current usage, so sample at each checkpoint
        self.clock.peak_memory()

    def _subscribe(self, registry, hook_name, callback, priority, accepted_args=1):
        registry.add_action(hook_name, callback, priority, accepted_args)
        self._subscriptions.append((hook_name, callback, priority))

    def attach(self, registry) -> None:
        """Subscribe phase, query, hook-profiler and shutdown handlers."""
        self._registry = registry

        for name in self.phase_hooks:
            self._subscribe(
                registry,
                name,
                self._guard(f"phase start '{name}'", lambda *_, n=name: self._on_phase(n)),
                registry.FIRST_PRIORITY,
                accepted_args=0,
            )

        # Queries are always counted; per-query timing follows enable_query_tracking
        self._subscribe(
            registry,
            QUERY_START_HOOK,
            self._guard("query start", self.queries.on_query_start, passthrough=True),
            10,
        )
        self._subscribe(
            registry,
            QUERY_END_HOOK,
            self._guard("query end", self.queries.on_query_end),
            10,
        )

        if self.hook_profiler is not None:
            self.hook_profiler.attach(registry, guard=self._guard)

        self._subscribe(
            registry,
            SHUTDOWN_HOOK,
            self._guard("end request", lambda *_: self.end_request()),
            registry.LAST_PRIORITY,
            accepted_args=0,
        )

    def detach(self) -> None:
        registry = self._registry
        if registry is None:
            return
        for hook_name, callback, priority in self._subscriptions:
            registry.remove_action(hook_name, callback, priority)
        self._subscriptions.clear()
        if self.hook_profiler is not None:
            self.hook_profiler.detach()
        self._registry = None

    def end_request(self) -> float:
        """
        Close the request: finalize phases, drop unmatched queries.
        Idempotent; returns the total request time.
        """
        if self.ended_at is None:
            self.ended_at = self.clock.now()
            self.phases.finalize(self.ended_at)
            self.queries.discard_pending()
            self.clock.peak_memory()
        return self.total_time()
