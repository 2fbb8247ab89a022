"""
Request phase timing.

The tracker consumes ordered lifecycle checkpoints from the host and keeps
an ordered log of named phases.

Design
------
- Starting a phase force-closes the currently open one at the same
  timestamp, so the time between two checkpoints is always attributed even
  when the host never emits an explicit end.
- An end notification for a phase that is not open is ignored.
- `finalize()` closes whatever is still open and is idempotent.
- A phase name may occur several times per request; each occurrence is its
  own record, and summaries fold occurrences by name in first-open order.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from wppa.utils.clock import EventClock


@dataclass
class PhaseRecord:
    """
    One occurrence of a named phase.

    `end` and `duration` are only ever set together, by `close()`.
    """

    name: str
    start: float
    end: Optional[float] = None
    duration: Optional[float] = None

    @property
    def is_open(self) -> bool:
        return self.end is None

    def close(self, at: float) -> None:
        if not self.is_open:
            return
        self.end = at
        self.duration = max(0.0, at - self.start)


@dataclass(frozen=True)
class PhaseShare:
    """Renderer-facing row of the phase summary."""

    name: str
    duration: float
    percentage: float

    def to_wire(self) -> Dict[str, float]:
        return {
            "label": self.name,
            "value": round(self.duration * 1000.0, 3),
            "percentage": round(self.percentage, 2),
        }


class PhaseTracker:
    def __init__(self, clock: Optional[EventClock] = None) -> None:
        self.clock = clock or EventClock()
        self._records: List[PhaseRecord] = []
        self._current: Optional[PhaseRecord] = None

    @property
    def records(self) -> List[PhaseRecord]:
        return list(self._records)

    @property
    def current(self) -> Optional[PhaseRecord]:
        return self._current

    @property
    def first_start(self) -> Optional[float]:
        return self._records[0].start if self._records else None

    def _now(self, at: Optional[float]) -> float:
        return self.clock.now() if at is None else float(at)

    def on_phase_start(self, name: str, at: Optional[float] = None) -> PhaseRecord:
        now = self._now(at)
        if self._current is not None and self._current.is_open:
            self._current.close(now)

        record = PhaseRecord(name=name, start=now)
        self._records.append(record)
        self._current = record
        return record

    def on_phase_end(self, name: str, at: Optional[float] = None) -> Optional[PhaseRecord]:
        record = self._open_record(name)
        if record is None:
            return None
        record.close(self._now(at))
        if record is self._current:
            self._current = None
        return record

    def _open_record(self, name: str) -> Optional[PhaseRecord]:
        # Last occurrence wins
        for record in reversed(self._records):
            if record.name == name and record.is_open:
                return record
        return None

    def finalize(self, now: Optional[float] = None) -> None:
        """Force-close any open phase. Safe to call more than once."""
        at = self._now(now)
        for record in self._records:
            if record.is_open:
                record.close(at)
        self._current = None

    def closed_records(self) -> List[PhaseRecord]:
        return [r for r in self._records if not r.is_open]

    def summarize(self, total_request_time: float) -> List[PhaseShare]:
        """
        Per-phase durations and share of `total_request_time`, in the order
        phases were first opened. Open phases contribute nothing.
        """
        totals: Dict[str, float] = {}
        for record in self._records:
            totals.setdefault(record.name, 0.0)
            if record.duration is not None:
                totals[record.name] += record.duration

        out: List[PhaseShare] = []
        for name, duration in totals.items():
            pct = (duration / total_request_time * 100.0) if total_request_time > 0 else 0.0
            out.append(PhaseShare(name=name, duration=duration, percentage=pct))
        return out

    def slowest_phase(self) -> Optional[PhaseRecord]:
        slowest: Optional[PhaseRecord] = None
        for record in self.closed_records():
            if slowest is None or record.duration > slowest.duration:
                slowest = record
        return slowest
