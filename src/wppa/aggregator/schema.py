"""
Summary schemas (shared contract).

This module defines the data contract between the Reporter and its
consumers: renderers, the JSON chart feed, and the sample store.

Design guarantees
-----------------
- Flat, wire-friendly structures via `to_wire()`
- Durations in seconds, memory in bytes
- No references back into live tracker state
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

PAGE_LOAD_LABEL = "page load"


@dataclass(frozen=True)
class ComponentShare:
    """One row of the top-N slowest components table."""

    name: str
    time: float
    percentage: float
    hook_count: int = 0

    def to_wire(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "time": float(self.time),
            "percentage": float(self.percentage),
            "hook_count": int(self.hook_count),
        }


@dataclass(frozen=True)
class RequestSummary:
    """Current request overview."""

    total_time: float
    query_count: int
    query_time: float
    memory_usage: int
    top_components: List[ComponentShare] = field(default_factory=list)

    def to_wire(self) -> Dict[str, Any]:
        return {
            "total_time": float(self.total_time),
            "query_count": int(self.query_count),
            "query_time": float(self.query_time),
            "memory_usage": int(self.memory_usage),
            "top_components": [c.to_wire() for c in self.top_components],
        }


@dataclass(frozen=True)
class PersistedSample:
    """
    One row of the performance log.

    `timestamp` is assigned by the store at insert time.
    """

    page_url: str
    component_label: str
    execution_time: float
    memory_usage: int
    query_count: int
    query_time: float

    def to_wire(self) -> Dict[str, Any]:
        return {
            "page_url": str(self.page_url),
            "component_label": str(self.component_label),
            "execution_time": float(self.execution_time),
            "memory_usage": int(self.memory_usage),
            "query_count": int(self.query_count),
            "query_time": float(self.query_time),
        }

    @staticmethod
    def from_wire(data: Dict[str, Any]) -> "PersistedSample":
        return PersistedSample(
            page_url=str(data.get("page_url", "/")),
            component_label=str(data.get("component_label", PAGE_LOAD_LABEL)),
            execution_time=float(data.get("execution_time", 0.0)),
            memory_usage=int(data.get("memory_usage", 0)),
            query_count=int(data.get("query_count", 0)),
            query_time=float(data.get("query_time", 0.0)),
        )
