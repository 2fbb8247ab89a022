"""
Persisted performance samples.

SampleStore is the storage collaborator of the reporter: the reporter only
produces PersistedSample values, the store assigns ids and timestamps,
keeps them in a `Database` table and mirrors that table to
`<data_dir>/performance_logs.jsonl` when a data dir is configured.

Read-side helpers back the history dashboards:
daily history, hourly timeline, per-component performance, realtime stats.
All time windows are relative to `now` (epoch seconds, injectable).
"""

import json
import os
import time
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from wppa.aggregator.schema import PersistedSample
from wppa.database.database import Database
from wppa.loggers.error_log import get_error_logger

SECONDS_PER_DAY = 86400.0
SECONDS_PER_HOUR = 3600.0


def _mean(values: Iterable[float]) -> float:
    values = list(values)
    return sum(values) / len(values) if values else 0.0


class SampleStore:
    TABLE = "performance_logs"

    def __init__(
        self,
        data_dir: Optional[str] = None,
        time_fn: Callable[[], float] = time.time,
    ) -> None:
        self.data_dir = data_dir or None
        self.db = Database("SampleStore", logs_dir=self.data_dir)
        self._rows = self.db.create_or_get_table(self.TABLE)
        self._next_id = 1
        self._time_fn = time_fn
        self.logger = get_error_logger("SampleStore")

    @classmethod
    def load(cls, data_dir: str, time_fn: Callable[[], float] = time.time) -> "SampleStore":
        """Open a store and read back any rows already in its JSONL file."""
        store = cls(data_dir=data_dir, time_fn=time_fn)
        path = store.db.writer.path_for(cls.TABLE)
        if not os.path.exists(path):
            return store

        with open(path, "r", encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    row = json.loads(line)
                except json.JSONDecodeError as e:
                    store.logger.warning(f"[WPPA] Skipping malformed row {path}:{lineno}: {e}")
                    continue
                store._rows.append(row)

        store.db.writer.mark_written(cls.TABLE, len(store._rows))
        ids = [int(r.get("id", 0)) for r in store._rows]
        store._next_id = max(ids, default=0) + 1
        return store

    def __len__(self) -> int:
        return len(self._rows)

    def _now(self, now: Optional[float]) -> float:
        return self._time_fn() if now is None else float(now)

    def _within(self, seconds: float, now: Optional[float]) -> List[Dict[str, Any]]:
        cutoff = self._now(now) - seconds
        return [r for r in self._rows if float(r.get("timestamp", 0.0)) > cutoff]

    def insert(self, sample: PersistedSample, timestamp: Optional[float] = None) -> int:
        row = sample.to_wire()
        row["id"] = self._next_id
        row["timestamp"] = self._now(timestamp)
        self.db.add_record(self.TABLE, row)
        self._next_id += 1
        self.db.writer.flush()
        return row["id"]

    def rows(self) -> List[Dict[str, Any]]:
        return [dict(r) for r in self._rows]

    def samples(self) -> List[PersistedSample]:
        return [PersistedSample.from_wire(r) for r in self._rows]

    def cleanup(self, retention_days: int, now: Optional[float] = None) -> int:
        """Delete rows older than `retention_days`. Returns rows deleted."""
        cutoff = self._now(now) - float(retention_days) * SECONDS_PER_DAY
        removed = self.db.delete_where(
            self.TABLE, lambda r: float(r.get("timestamp", 0.0)) < cutoff
        )
        self.db.writer.flush()
        return removed

    def clear(self) -> None:
        self.db.truncate(self.TABLE)
        self.db.writer.flush()

    def daily_history(self, days: int = 7, now: Optional[float] = None) -> List[Dict[str, Any]]:
        """Per-day averages over the last `days` days, newest first."""
        buckets: Dict[str, List[Dict[str, Any]]] = {}
        for r in self._within(days * SECONDS_PER_DAY, now):
            day = datetime.fromtimestamp(float(r["timestamp"])).strftime("%Y-%m-%d")
            buckets.setdefault(day, []).append(r)

        out = [
            {
                "date": day,
                "avg_time": _mean(float(r["execution_time"]) for r in rows),
                "avg_queries": _mean(float(r["query_count"]) for r in rows),
                "avg_memory": _mean(float(r["memory_usage"]) for r in rows),
            }
            for day, rows in buckets.items()
        ]
        return sorted(out, key=lambda d: d["date"], reverse=True)

    def hourly_timeline(self, hours: int = 24, now: Optional[float] = None) -> List[Dict[str, Any]]:
        """Per-hour averages over the last `hours` hours, oldest first."""
        buckets: Dict[str, List[Dict[str, Any]]] = {}
        for r in self._within(hours * SECONDS_PER_HOUR, now):
            hour = datetime.fromtimestamp(float(r["timestamp"])).strftime("%Y-%m-%d %H:00:00")
            buckets.setdefault(hour, []).append(r)

        out = [
            {
                "hour": hour,
                "avg_time": _mean(float(r["execution_time"]) for r in rows),
                "avg_queries": _mean(float(r["query_count"]) for r in rows),
            }
            for hour, rows in buckets.items()
        ]
        return sorted(out, key=lambda d: d["hour"])

    def component_performance(
        self, days: int = 7, limit: int = 10, now: Optional[float] = None
    ) -> List[Dict[str, Any]]:
        """Per-component execution time stats, slowest average first."""
        buckets: Dict[str, List[float]] = {}
        for r in self._within(days * SECONDS_PER_DAY, now):
            buckets.setdefault(str(r["component_label"]), []).append(float(r["execution_time"]))

        out = [
            {
                "component": name,
                "avg_time": _mean(times),
                "max_time": max(times),
                "sample_count": len(times),
            }
            for name, times in buckets.items()
        ]
        out.sort(key=lambda d: d["avg_time"], reverse=True)
        return out[: max(0, limit)]

    def realtime_stats(self, window_sec: float = 300.0, now: Optional[float] = None) -> Dict[str, float]:
        rows = self._within(window_sec, now)
        return {
            "avg_time": _mean(float(r["execution_time"]) for r in rows),
            "avg_queries": _mean(float(r["query_count"]) for r in rows),
            "avg_memory": _mean(float(r["memory_usage"]) for r in rows),
        }

    def recent_for_component(
        self,
        component: str,
        hours: int = 24,
        limit: int = 20,
        now: Optional[float] = None,
    ) -> List[Dict[str, Any]]:
        rows = [
            dict(r)
            for r in self._within(hours * SECONDS_PER_HOUR, now)
            if r.get("component_label") == component
        ]
        rows.sort(key=lambda r: float(r["timestamp"]), reverse=True)
        return rows[: max(0, limit)]
