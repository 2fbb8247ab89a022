"""
Hook-level profiler.

Subscribes to every hook the host dispatches and attributes the time spent
in each dispatch to the components that own its callbacks.

Architecture
------------
- The "all" hook announces each dispatch: a HookOccurrence is opened, the
  callback set is snapshotted and resolved to CallbackInfo (via the
  process-wide provenance cache).
- A completion callback registered at the host's last priority on the same
  hook closes the occurrence when the dispatch reaches its end.
- Aggregation (per-component totals) is deferred until asked for.

Occurrence lifecycle
--------------------
    STARTED -> CALLBACKS_ENUMERATED -> COMPLETED

Known approximations
--------------------
- Completion is matched by hook name to the *first* unfinished occurrence
  of that name. Deeply re-entrant dispatch of the same hook can therefore
  pair an end with the wrong occurrence.
- A component is credited the full occurrence duration for every hook it
  has a callback on, so totals inflate when hooks are shared.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from wppa.instrumentation.provenance import (
    CallbackInfo,
    PathClassifier,
    ProvenanceCache,
    describe_callback,
)
from wppa.loggers.error_log import get_error_logger
from wppa.utils.clock import EventClock


# guard(label, fn, passthrough) -> host-safe callable
GuardFactory = Callable[[str, Callable[..., Any], bool], Callable[..., Any]]


def _unguarded(label: str, fn: Callable[..., Any], passthrough: bool) -> Callable[..., Any]:
    return fn


class HookState(str, Enum):
    STARTED = "started"
    CALLBACKS_ENUMERATED = "callbacks_enumerated"
    COMPLETED = "completed"


@dataclass
class HookOccurrence:
    """
    A single dispatch of a hook.

    `occurrence_id` is `<hook_name>#<n>`, n increasing per hook name and
    never reused, so nested firings of one hook stay distinct.
    """

    hook_name: str
    occurrence_id: str
    start: float
    end: Optional[float] = None
    callbacks: List[CallbackInfo] = field(default_factory=list)
    state: HookState = HookState.STARTED

    @property
    def is_open(self) -> bool:
        return self.end is None

    @property
    def duration(self) -> Optional[float]:
        if self.end is None:
            return None
        return max(0.0, self.end - self.start)

    @property
    def components(self) -> List[str]:
        """Distinct owning components in callback order."""
        return list(dict.fromkeys(cb.owning_component for cb in self.callbacks))


@dataclass
class ComponentPerformanceTotal:
    component: str
    total_time: float = 0.0
    hook_count: int = 0
    per_hook: Dict[str, float] = field(default_factory=dict)

    def to_wire(self) -> Dict[str, Any]:
        return {
            "component": self.component,
            "total_time": float(self.total_time),
            "hook_count": int(self.hook_count),
            "per_hook": dict(self.per_hook),
        }


class HookProfiler:
    """
    Per-request hook profiler.

    Usage
    -----
        profiler = HookProfiler(clock, classifier)
        profiler.attach(registry)      # subscribes to "all"
        ...host dispatches hooks...
        totals = profiler.per_component_totals()

    `on_any_hook_fire` / `on_hook_complete` can also be driven directly.
    """

    def __init__(
        self,
        clock: Optional[EventClock] = None,
        classifier: Optional[PathClassifier] = None,
        cache: Optional[ProvenanceCache] = None,
        reserved_prefixes: Sequence[str] = ("wppa_",),
        reserved_names: Iterable[str] = ("all",),
    ) -> None:
        self.clock = clock or EventClock()
        self.classifier = classifier
        self.cache = cache
        self.reserved_prefixes = tuple(p for p in reserved_prefixes if p)
        self.reserved_names = frozenset(reserved_names)

        self._sequence: Dict[str, int] = {}
        self._open: List[HookOccurrence] = []
        self._occurrences: List[HookOccurrence] = []
        self._series: Dict[str, List[HookOccurrence]] = {}

        self._registry = None
        self._completion_registered: set = set()
        self._all_cb: Callable[..., Any] = self._on_all_hook
        self._complete_cb: Callable[..., Any] = self._on_complete
        self._null_cache = ProvenanceCache()
        self.logger = get_error_logger("HookProfiler")

    def is_reserved(self, hook_name: str) -> bool:
        if hook_name in self.reserved_names:
            return True
        return any(hook_name.startswith(p) for p in self.reserved_prefixes)

    @property
    def occurrences(self) -> List[HookOccurrence]:
        return list(self._occurrences)

    @property
    def open_occurrences(self) -> List[HookOccurrence]:
        return list(self._open)

    def timing_series(self, hook_name: str) -> List[float]:
        """Durations of completed occurrences of `hook_name`, in completion order."""
        return [occ.duration for occ in self._series.get(hook_name, [])]

    def completed(self) -> List[HookOccurrence]:
        return [occ for occ in self._occurrences if not occ.is_open]

    def _next_occurrence_id(self, hook_name: str) -> str:
        n = self._sequence.get(hook_name, 0) + 1
        self._sequence[hook_name] = n
        return f"{hook_name}#{n}"

    def _describe(self, callback: Callable[..., Any]) -> CallbackInfo:
        if self.classifier is None:
            # Keep "unknown" owners out of the shared cache
            return describe_callback(callback, _NULL_CLASSIFIER, self._null_cache)
        return describe_callback(callback, self.classifier, self.cache)

    def on_any_hook_fire(
        self, hook_name: str, callbacks: Iterable[Callable[..., Any]] = ()
    ) -> Optional[HookOccurrence]:
        """
        Open an occurrence for `hook_name` and resolve its callbacks.

        Reserved hooks are ignored and consume no sequence number.
        """
        if self.is_reserved(hook_name):
            return None

        occ = HookOccurrence(
            hook_name=hook_name,
            occurrence_id=self._next_occurrence_id(hook_name),
            start=self.clock.now(),
        )
        self._open.append(occ)
        self._occurrences.append(occ)

        # Snapshot: later (un)registrations do not affect this occurrence
        for cb in list(callbacks):
            if self._is_own_callback(cb):
                continue
            occ.callbacks.append(self._describe(cb))
        occ.state = HookState.CALLBACKS_ENUMERATED
        return occ

    def on_hook_complete(self, hook_name: str) -> Optional[HookOccurrence]:
        """Close the first unfinished occurrence of `hook_name`, if any."""
        for i, occ in enumerate(self._open):
            if occ.hook_name != hook_name:
                continue
            del self._open[i]
            occ.end = self.clock.now()
            occ.state = HookState.COMPLETED
            self._series.setdefault(hook_name, []).append(occ)
            return occ
        return None

    def attach(self, registry, guard: Optional[GuardFactory] = None) -> None:
        """
        Subscribe to every dispatch of `registry`.

        `guard(label, fn, passthrough)` wraps each host-facing callback; the
        wrapped callables are what gets registered and later removed.
        """
        guard = guard or _unguarded
        self._registry = registry
        self._all_cb = guard("hook profiler", self._on_all_hook, False)
        self._complete_cb = guard("hook completion", self._on_complete, True)
        registry.add_action(
            registry.ALL_HOOK,
            self._all_cb,
            registry.FIRST_PRIORITY,
            accepted_args=1,
        )

    def detach(self) -> None:
        """Remove every subscription made by `attach()`."""
        registry = self._registry
        if registry is None:
            return
        registry.remove_action(registry.ALL_HOOK, self._all_cb, registry.FIRST_PRIORITY)
        for hook_name in self._completion_registered:
            registry.remove_action(hook_name, self._complete_cb, registry.LAST_PRIORITY)
        self._completion_registered.clear()
        self._registry = None

    def _on_all_hook(self, hook_name: str, *_args: Any) -> None:
        # The "all" hook forwards the dispatch arguments after the name
        try:
            if self.is_reserved(hook_name):
                return
            registry = self._registry
            callbacks = registry.callbacks(hook_name) if registry is not None else []
            self.on_any_hook_fire(hook_name, callbacks)
            if registry is not None and hook_name not in self._completion_registered:
                registry.add_action(
                    hook_name, self._complete_cb, registry.LAST_PRIORITY, accepted_args=1
                )
                self._completion_registered.add(hook_name)
        except Exception as e:
            self.logger.error(f"[WPPA] HookProfiler failed on '{hook_name}': {e}")

    def _on_complete(self, *args: Any) -> Any:
        # Filters pass their value through the completion callback untouched
        try:
            registry = self._registry
            hook_name = registry.current_hook() if registry is not None else None
            if hook_name is not None:
                self.on_hook_complete(hook_name)
        except Exception as e:
            self.logger.error(f"[WPPA] HookProfiler completion failed: {e}")
        return args[0] if args else None

    def _is_own_callback(self, cb: Callable[..., Any]) -> bool:
        return cb in (self._on_complete, self._on_all_hook, self._complete_cb, self._all_cb)

    def per_component_totals(self) -> Dict[str, ComponentPerformanceTotal]:
        """
        component -> totals over completed occurrences, sorted by total_time desc.

        A component with several callbacks on one occurrence is counted once
        for that occurrence.
        """
        totals: Dict[str, ComponentPerformanceTotal] = {}
        for occ in self._occurrences:
            duration = occ.duration
            if duration is None:
                continue
            for component in occ.components:
                t = totals.get(component)
                if t is None:
                    t = totals[component] = ComponentPerformanceTotal(component=component)
                t.total_time += duration
                t.hook_count += 1
                t.per_hook[occ.hook_name] = t.per_hook.get(occ.hook_name, 0.0) + duration

        ranked: List[Tuple[str, ComponentPerformanceTotal]] = sorted(
            totals.items(), key=lambda kv: kv[1].total_time, reverse=True
        )
        return dict(ranked)

    def top_components(self, n: int) -> List[ComponentPerformanceTotal]:
        if n <= 0:
            return []
        return list(self.per_component_totals().values())[:n]


class _NullClassifier:
    def classify(self, path: Optional[str]) -> str:
        return "unknown"


_NULL_CLASSIFIER = _NullClassifier()
