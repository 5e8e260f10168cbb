import json
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests

from api_clients.base_client import FILTER_OPERATORS, Filter, Order
from utils.errors import StoreError

logger = logging.getLogger("messaging_service")


def _json_default(obj):
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    raise TypeError(f"Type {type(obj)} not serializable")


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def _quote(value: Any) -> str:
    text = _format_value(value)
    if any(ch in text for ch in ',()"'):
        return '"' + text.replace('"', '\\"') + '"'
    return text


class RestBackend:
    """
    PostgREST (Supabase) table backend.

    Filters become `column=op.value` query parameters, ordering becomes
    `order=col.asc,col.desc`, and writes ask for the affected rows back
    with `Prefer: return=representation`.
    """

    def __init__(self, base_url: str, api_key: str, timeout: int = 30):
        self.base_url = base_url.rstrip("/") + "/rest/v1"
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        })

    def _params(
        self,
        filters: Sequence[Filter] = (),
        order: Sequence[Order] = (),
        limit: Optional[int] = None,
    ) -> List[Tuple[str, str]]:
        params: List[Tuple[str, str]] = [("select", "*")]
        for column, op, value in filters:
            if op not in FILTER_OPERATORS:
                raise ValueError(f"Unsupported filter operator: {op}")
            if op == "in":
                params.append((column, f"in.({','.join(_quote(v) for v in value)})"))
            else:
                params.append((column, f"{op}.{_format_value(value)}"))
        if order:
            params.append(("order", ",".join(f"{col}.{'desc' if is_desc else 'asc'}" for col, is_desc in order)))
        if limit is not None:
            params.append(("limit", str(limit)))
        return params

    def _request(self, method: str, table: str, params=None, payload=None, prefer: Optional[str] = None):
        headers = {"Prefer": prefer} if prefer else None
        data = json.dumps(payload, default=_json_default) if payload is not None else None
        try:
            resp = self.session.request(
                method,
                f"{self.base_url}/{table}",
                params=params,
                data=data,
                headers=headers,
                timeout=self.timeout,
            )
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"[Store] {method} {table} failed: {e}")
            response = getattr(e, "response", None)
            if response is not None:
                logger.error(f"[Store] Response: {response.text}")
            raise StoreError(f"{method} {table} failed: {e}") from e
        if not resp.content:
            return []
        return resp.json()

    def select(self, table: str, filters=(), order=(), limit=None) -> List[Dict[str, Any]]:
        # Empty IN lists match nothing; PostgREST rejects `in.()`.
        if any(op == "in" and not value for _, op, value in filters):
            return []
        return self._request("GET", table, params=self._params(filters, order, limit))

    def insert(self, table: str, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        payload = [{k: v for k, v in row.items() if v is not None} for row in rows]
        return self._request("POST", table, payload=payload, prefer="return=representation")

    def update(self, table: str, values: Dict[str, Any], filters=()) -> List[Dict[str, Any]]:
        if not filters:
            raise ValueError("Refusing to update without filters.")
        if any(op == "in" and not value for _, op, value in filters):
            return []
        params = self._params(filters)[1:]
        return self._request("PATCH", table, params=params, payload=values, prefer="return=representation")

    def delete(self, table: str, filters=()) -> int:
        if not filters:
            raise ValueError("Refusing to delete without filters.")
        if any(op == "in" and not value for _, op, value in filters):
            return 0
        params = self._params(filters)[1:]
        deleted = self._request("DELETE", table, params=params, prefer="return=representation")
        return len(deleted)
