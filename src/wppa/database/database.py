from typing import Any, Callable, Dict, List, Optional

from wppa.database.database_writer import DatabaseWriter


class Database:
    """
    Each "table" is a list of row dicts. Table names must be unique.
    """

    def __init__(self, name: str, logs_dir: Optional[str] = None):
        self.name = name
        self._tables: Dict[str, List[Dict[str, Any]]] = {}
        self.writer = DatabaseWriter(self, logs_dir=logs_dir)

    def create_table(self, name: str) -> List[Dict[str, Any]]:
        """
        Create a new empty table.
        Raise ValueError if table already exists.
        """
        if name in self._tables:
            raise ValueError(f"Table '{name}' already exists.")
        self._tables[name] = []
        return self._tables[name]

    def create_or_get_table(self, name: str) -> List[Dict[str, Any]]:
        """
        Create table if missing, otherwise return existing table.
        """
        if name not in self._tables:
            self._tables[name] = []
        return self._tables[name]

    def add_record(self, table: str, record: Dict[str, Any]) -> None:
        """
        Add a single record to an existing table.
        """
        if table not in self._tables:
            raise ValueError(f"Table '{table}' does not exist.")
        self._tables[table].append(record)

    def get_table(self, table: str) -> List[Dict[str, Any]]:
        return self._tables.get(table, [])

    def delete_where(self, table: str, predicate: Callable[[Dict[str, Any]], bool]) -> int:
        """
        Delete rows matching `predicate`. Returns the number of rows removed.
        """
        rows = self._tables.get(table)
        if not rows:
            return 0
        kept = [r for r in rows if not predicate(r)]
        removed = len(rows) - len(kept)
        # In place, so references handed out by create_or_get_table stay valid
        rows[:] = kept
        if removed:
            self.writer.invalidate(table)
        return removed

    def truncate(self, table: str) -> None:
        if table in self._tables:
            self._tables[table].clear()
            self.writer.invalidate(table)

    def all_tables(self) -> Dict[str, List[Dict[str, Any]]]:
        """Return a dict of all tables."""
        return self._tables

    def clear(self) -> None:
        """Clear all tables."""
        for name in list(self._tables):
            self.truncate(name)
