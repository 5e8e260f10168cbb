from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
import logging

logger = logging.getLogger("messaging_service")

# (column, operator, value). Operators: eq, neq, in, lt, lte, gt, gte, is.
Filter = Tuple[str, str, Any]
# (column, descending)
Order = Tuple[str, bool]

FILTER_OPERATORS = {"eq", "neq", "in", "lt", "lte", "gt", "gte", "is"}


def eq(column: str, value: Any) -> Filter:
    return (column, "eq", value)


def in_(column: str, values: Iterable[Any]) -> Filter:
    return (column, "in", list(values))


def lte(column: str, value: Any) -> Filter:
    return (column, "lte", value)


def gt(column: str, value: Any) -> Filter:
    return (column, "gt", value)


def asc(column: str) -> Order:
    return (column, False)


def desc(column: str) -> Order:
    return (column, True)


class BaseClient:
    """
    Table access shared by every client. The backend does the I/O; a client
    only knows its table names and how rows map to models.
    """

    def __init__(self, backend=None):
        if backend is None:
            from config import get_settings
            backend = build_backend(get_settings())
        self.backend = backend

    def _select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        order: Sequence[Order] = (),
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        return self.backend.select(table, filters=filters, order=order, limit=limit)

    def _first(self, table: str, filters: Sequence[Filter] = ()) -> Optional[Dict[str, Any]]:
        rows = self._select(table, filters=filters, limit=1)
        return rows[0] if rows else None

    def _insert(self, table: str, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if not rows:
            return []
        return self.backend.insert(table, rows)

    def _update(self, table: str, values: Dict[str, Any], filters: Sequence[Filter]) -> List[Dict[str, Any]]:
        return self.backend.update(table, values, filters=filters)

    def _delete(self, table: str, filters: Sequence[Filter]) -> int:
        return self.backend.delete(table, filters=filters)


def build_backend(settings):
    """Builds the table backend named by settings.store_backend."""
    store = (settings.store_backend or "rest").lower()
    if store == "memory":
        from api_clients.memory_backend import shared_memory_backend
        return shared_memory_backend()
    if store == "rest":
        from api_clients.rest_backend import RestBackend
        if not settings.supabase_url or not settings.supabase_key:
            raise ValueError("REST store requires SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY.")
        return RestBackend(
            base_url=settings.supabase_url,
            api_key=settings.supabase_key,
            timeout=settings.store_timeout_seconds,
        )
    raise ValueError(f"Unsupported store backend: {store}")


def to_row(model) -> Dict[str, Any]:
    """Serializes a model for insertion; unset columns fall back to table defaults."""
    return model.model_dump(mode="json", exclude_none=True)
