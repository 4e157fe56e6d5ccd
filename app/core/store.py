"""
Table Store

Thin row-level interface over the Supabase (PostgREST) client:

- select(table, filters, order, desc, limit, columns) -> rows
- insert(table, row) -> row
- update(table, filters, patch) -> rows
- delete(table, filters) -> count

Every call is a single PostgREST request, i.e. a single SQL statement.
Failures are translated into two distinguishable errors:

- UniqueConstraintError: Postgres unique_violation (SQLSTATE 23505)
- StoreUnavailableError: the request never got an answer (connect error, timeout)

Any other PostgREST APIError is propagated unchanged.
"""

from typing import Any, Dict, Iterable, List, NamedTuple, Optional

import httpx
from postgrest.exceptions import APIError

from app.core.database import get_supabase_client

UNIQUE_VIOLATION_CODE = "23505"


class StoreError(Exception):
    """Base class for translated store failures."""


class UniqueConstraintError(StoreError):
    """An insert/update collided with a unique index."""

    def __init__(self, table: str, message: str = ""):
        self.table = table
        super().__init__(message or f"Unique constraint violated on {table}")


class StoreUnavailableError(StoreError):
    """The backing store could not be reached."""


class Filter(NamedTuple):
    column: str
    op: str  # eq | is_null | not_null | in
    value: Any = None


def eq(column: str, value: Any) -> Filter:
    return Filter(column, "eq", value)


def is_null(column: str) -> Filter:
    return Filter(column, "is_null")


def not_null(column: str) -> Filter:
    return Filter(column, "not_null")


def in_(column: str, values: Iterable[Any]) -> Filter:
    return Filter(column, "in", list(values))


def _apply_filters(query, filters: Iterable[Filter]):
    for f in filters:
        if f.op == "eq":
            query = query.eq(f.column, f.value)
        elif f.op == "is_null":
            query = query.is_(f.column, "null")
        elif f.op == "not_null":
            query = query.not_.is_(f.column, "null")
        elif f.op == "in":
            query = query.in_(f.column, f.value)
        else:
            raise ValueError(f"Unsupported filter operator: {f.op}")
    return query


class SupabaseTableStore:
    """Row store backed by the shared Supabase client."""

    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = get_supabase_client()
        return self._client

    def _execute(self, query, table: str):
        try:
            return query.execute()
        except APIError as exc:
            if str(getattr(exc, "code", "")) == UNIQUE_VIOLATION_CODE:
                raise UniqueConstraintError(table, exc.message or "") from exc
            raise
        except httpx.TransportError as exc:
            raise StoreUnavailableError(
                f"Store request to {table} failed: {exc}"
            ) from exc

    def select(
        self,
        table: str,
        filters: Iterable[Filter] = (),
        order: Optional[str] = None,
        desc: bool = False,
        limit: Optional[int] = None,
        columns: str = "*",
    ) -> List[Dict[str, Any]]:
        query = _apply_filters(self.client.table(table).select(columns), filters)
        if order:
            query = query.order(order, desc=desc)
        if limit is not None:
            query = query.limit(limit)

        result = self._execute(query, table)
        return result.data if result.data else []

    def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        result = self._execute(self.client.table(table).insert(row), table)
        if not result.data:
            raise StoreError(f"Insert into {table} returned no row")
        return result.data[0]

    def update(
        self, table: str, filters: Iterable[Filter], patch: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        query = _apply_filters(self.client.table(table).update(patch), filters)
        result = self._execute(query, table)
        return result.data if result.data else []

    def delete(self, table: str, filters: Iterable[Filter]) -> int:
        query = _apply_filters(self.client.table(table).delete(), filters)
        result = self._execute(query, table)
        # Supabase delete returns the deleted rows; count them
        return len(result.data) if result.data else 0
