import copy
import threading
import uuid
from collections import defaultdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from api_clients.base_client import FILTER_OPERATORS
from utils.time_utils import ensure_aware, utcnow

# Columns stamped on insert when the caller leaves them empty.
_TIMESTAMP_COLUMNS = ("created_at",)


def _normalize(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return ensure_aware(value)
    if isinstance(value, str) and len(value) >= 19 and value[4:5] == "-" and value[10:11] == "T":
        try:
            return ensure_aware(datetime.fromisoformat(value.replace("Z", "+00:00")))
        except ValueError:
            return value
    return value


def _matches(row: Dict[str, Any], column: str, op: str, value: Any) -> bool:
    if op not in FILTER_OPERATORS:
        raise ValueError(f"Unsupported filter operator: {op}")
    current = _normalize(row.get(column))
    if op == "is":
        return current is None if value is None else current == value
    if op == "in":
        return current in {_normalize(v) for v in value}
    expected = _normalize(value)
    if op == "eq":
        return current == expected
    if op == "neq":
        return current != expected
    if current is None:
        return False
    if op == "lt":
        return current < expected
    if op == "lte":
        return current <= expected
    if op == "gt":
        return current > expected
    return current >= expected


class MemoryBackend:
    """
    In-process table backend with the same filter and ordering semantics as
    the REST backend. Every operation runs under one lock, so a filtered
    update is an atomic compare-and-set.
    """

    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self._tables: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        self._lock = threading.RLock()
        for table, rows in (tables or {}).items():
            self.insert(table, rows)

    def select(self, table: str, filters=(), order=(), limit=None) -> List[Dict[str, Any]]:
        with self._lock:
            rows = [r for r in self._tables[table] if all(_matches(r, c, o, v) for c, o, v in filters)]
            for column, is_desc in reversed(list(order)):
                present = [r for r in rows if r.get(column) is not None]
                missing = [r for r in rows if r.get(column) is None]
                present.sort(key=lambda r: _normalize(r[column]), reverse=is_desc)
                # Postgres puts NULLs last ascending, first descending.
                rows = missing + present if is_desc else present + missing
            if limit is not None:
                rows = rows[:limit]
            return copy.deepcopy(rows)

    def insert(self, table: str, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        created = []
        with self._lock:
            for row in rows:
                record = {k: _normalize(v) for k, v in copy.deepcopy(row).items()}
                if not record.get("id"):
                    record["id"] = str(uuid.uuid4())
                for column in _TIMESTAMP_COLUMNS:
                    if record.get(column) is None:
                        record[column] = utcnow()
                self._tables[table].append(record)
                created.append(copy.deepcopy(record))
        return created

    def update(self, table: str, values: Dict[str, Any], filters=()) -> List[Dict[str, Any]]:
        if not filters:
            raise ValueError("Refusing to update without filters.")
        updated = []
        with self._lock:
            for row in self._tables[table]:
                if all(_matches(row, c, o, v) for c, o, v in filters):
                    row.update({k: _normalize(v) for k, v in copy.deepcopy(values).items()})
                    updated.append(copy.deepcopy(row))
        return updated

    def delete(self, table: str, filters=()) -> int:
        if not filters:
            raise ValueError("Refusing to delete without filters.")
        with self._lock:
            keep, removed = [], 0
            for row in self._tables[table]:
                if all(_matches(row, c, o, v) for c, o, v in filters):
                    removed += 1
                else:
                    keep.append(row)
            self._tables[table] = keep
        return removed

    def rows(self, table: str) -> List[Dict[str, Any]]:
        """All rows of a table, unfiltered."""
        return self.select(table)


_shared: Optional[MemoryBackend] = None
_shared_lock = threading.Lock()


def shared_memory_backend() -> MemoryBackend:
    """Process-wide memory backend used when MESSAGING_STORE=memory."""
    global _shared
    with _shared_lock:
        if _shared is None:
            _shared = MemoryBackend()
        return _shared
