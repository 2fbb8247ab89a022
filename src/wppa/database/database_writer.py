import json
import os
from typing import Dict, Optional


class DatabaseWriter:
    """
    Writes incremental updates from a Database instance to JSONL files,
    one file per table. Keeps track of per-table write offsets.

    When rows are deleted the table is marked dirty and the next flush
    rewrites its file from scratch.
    """

    def __init__(self, db, logs_dir: Optional[str] = None):
        self.db = db
        self.logs_dir = logs_dir
        self._last_written: Dict[str, int] = {}
        self._dirty: set = set()

    @property
    def enabled(self) -> bool:
        return bool(self.logs_dir)

    def path_for(self, table_name: str) -> str:
        return os.path.join(self.logs_dir, f"{table_name}.jsonl")

    def invalidate(self, table_name: str) -> None:
        self._dirty.add(table_name)

    def flush(self) -> None:
        """Write only new rows from each table to its own file."""
        if not self.enabled:
            return
        os.makedirs(self.logs_dir, exist_ok=True)
        for table_name, rows in self.db.all_tables().items():
            path = self.path_for(table_name)
            if table_name in self._dirty:
                with open(path, "w", encoding="utf-8") as f:
                    for r in rows:
                        f.write(json.dumps(r) + "\n")
                self._last_written[table_name] = len(rows)
                self._dirty.discard(table_name)
                continue

            last = self._last_written.get(table_name, 0)
            new_rows = rows[last:]
            if not new_rows:
                continue
            with open(path, "a", encoding="utf-8") as f:
                for r in new_rows:
                    f.write(json.dumps(r) + "\n")

            self._last_written[table_name] = len(rows)

    def mark_written(self, table_name: str, count: int) -> None:
        """Record rows that are already on disk (e.g. loaded from the file)."""
        self._last_written[table_name] = int(count)
