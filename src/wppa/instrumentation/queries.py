"""
Database query timing.

The host notifies "query about to run" (with the raw SQL) and "query
finished" (with the last executed SQL, no correlation id). The log keeps
its own correlation.

Design
------
- Each start gets a key hashed from the query text plus the start time,
  so two identical back-to-back queries never share a key.
- A single "current" key is tracked: when starts interleave, the most
  recent start is the one the next end completes (last-start-wins).
- Every start is counted. Timings are only recorded when `record_timings`
  is on, and only once both ends are seen; starts still open at
  request end are dropped.
- The caller is the first stack frame, innermost outward, whose file lies
  under the plugins root; otherwise "core".
"""

import hashlib
import inspect
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from wppa.instrumentation.provenance import CORE_COMPONENT
from wppa.utils.clock import EventClock
from wppa.utils.paths import top_level_dir


class QueryType(str, Enum):
    SELECT = "SELECT"
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    SHOW = "SHOW"
    OTHER = "OTHER"


# Prefix match order
_PREFIX_ORDER = (
    QueryType.SELECT,
    QueryType.INSERT,
    QueryType.UPDATE,
    QueryType.DELETE,
    QueryType.SHOW,
)


def classify_query(query: str) -> QueryType:
    head = (query or "").lstrip().upper()
    for qtype in _PREFIX_ORDER:
        if head.startswith(qtype.value):
            return qtype
    return QueryType.OTHER


def correlation_key(query: str, timestamp: float, seq: int = 0) -> str:
    raw = f"{query}{timestamp!r}#{seq}"
    return hashlib.md5(raw.encode("utf-8", errors="replace")).hexdigest()


@dataclass(frozen=True)
class QueryTiming:
    correlation_key: str
    query: str
    started_at: float
    duration: float
    caller: str

    @property
    def query_type(self) -> QueryType:
        return classify_query(self.query)

    def to_wire(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "type": self.query_type.value,
            "started_at": float(self.started_at),
            "time": float(self.duration),
            "caller": self.caller,
        }


@dataclass
class QueryTypeGroup:
    count: int = 0
    total_time: float = 0.0
    queries: List[QueryTiming] = field(default_factory=list)

    @property
    def avg_time(self) -> float:
        return self.total_time / self.count if self.count else 0.0


class QueryTimingLog:
    def __init__(
        self,
        clock: Optional[EventClock] = None,
        plugins_dir: Optional[str] = None,
        max_stack_depth: int = 64,
        record_timings: bool = True,
    ) -> None:
        self.clock = clock or EventClock()
        self.plugins_dir = plugins_dir
        self.max_stack_depth = int(max_stack_depth)
        self.record_timings = record_timings

        # key -> (query text, start timestamp)
        self._open: Dict[str, Tuple[str, float]] = {}
        self._current_key: Optional[str] = None
        self._seq = 0
        self._timings: List[QueryTiming] = []
        self._seen = 0

    @property
    def timings(self) -> List[QueryTiming]:
        return list(self._timings)

    @property
    def pending(self) -> int:
        return len(self._open)

    @property
    def count(self) -> int:
        """Queries started this request, timed or not."""
        return self._seen

    @property
    def total_time(self) -> float:
        return sum(t.duration for t in self._timings)

    def on_query_start(self, query: str) -> Optional[str]:
        self._seen += 1
        if not self.record_timings:
            return None
        now = self.clock.now()
        self._seq += 1
        key = correlation_key(query, now, self._seq)
        self._open[key] = (query, now)
        self._current_key = key
        return key

    def on_query_end(self, last_query: Optional[str] = None) -> Optional[QueryTiming]:
        key = self._current_key
        if key is None or key not in self._open:
            return None

        query, started_at = self._open.pop(key)
        self._current_key = None
        duration = max(0.0, self.clock.now() - started_at)

        timing = QueryTiming(
            correlation_key=key,
            query=query if last_query is None else last_query,
            started_at=started_at,
            duration=duration,
            caller=self.attribute_caller(),
        )
        self._timings.append(timing)
        return timing

    def discard_pending(self) -> int:
        """Drop starts that never saw an end. Returns how many were dropped."""
        dropped = len(self._open)
        self._open.clear()
        self._current_key = None
        return dropped

    def attribute_caller(self, filenames: Optional[List[str]] = None) -> str:
        """
        Owning plugin slug of the innermost plugin frame, else "core".

        `filenames` (innermost first) overrides live stack inspection.
        """
        if not self.plugins_dir:
            return CORE_COMPONENT
        if filenames is None:
            filenames = self._stack_filenames()
        for filename in filenames:
            slug = top_level_dir(filename, self.plugins_dir)
            if slug:
                return slug
        return CORE_COMPONENT

    def _stack_filenames(self) -> List[str]:
        out: List[str] = []
        frame = inspect.currentframe()
        try:
            frame = frame.f_back if frame is not None else None
            while frame is not None and len(out) < self.max_stack_depth:
                out.append(frame.f_code.co_filename)
                frame = frame.f_back
        finally:
            del frame
        return out

    def group_by_type(self) -> Dict[str, QueryTypeGroup]:
        groups: Dict[str, QueryTypeGroup] = {}
        for timing in self._timings:
            group = groups.setdefault(timing.query_type.value, QueryTypeGroup())
            group.count += 1
            group.total_time += timing.duration
            group.queries.append(timing)
        order = [t.value for t in QueryType]
        return {k: groups[k] for k in order if k in groups}

    def slowest(self, n: int) -> List[QueryTiming]:
        if n <= 0:
            return []
        # sorted() is stable: ties keep encounter order
        return sorted(self._timings, key=lambda t: t.duration, reverse=True)[:n]
