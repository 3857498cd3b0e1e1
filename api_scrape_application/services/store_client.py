from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

from supabase import Client, create_client

from ..config import settings
from ..constants import USER_CONFIGS_TABLE
from ..scraping.exceptions import ConfigurationError, StoreError
from .store import FilterClause, RecordStore, StoreConnection

logger = logging.getLogger("scrape.store")


def _apply_filters(query: Any, filters: Sequence[FilterClause]) -> Any:
    for clause in filters:
        if clause.op == "eq":
            query = query.eq(clause.field, clause.value)
        elif clause.op == "ilike":
            query = query.ilike(clause.field, clause.value)
        else:
            raise StoreError(f"Unsupported filter operator {clause.op!r}")
    return query


def _error_message(exc: Exception) -> str:
    message = getattr(exc, "message", None)
    return str(message or exc) or exc.__class__.__name__


class SupabaseRecordStore:
    """RecordStore backed by a supabase-py client.

    The client is synchronous, so every call is pushed to a worker thread.
    """

    def __init__(self, client: Client) -> None:
        self._client = client

    async def _run(self, action: str, table: str, build: Callable[[], Any]) -> Any:
        def _execute() -> Any:
            return build().execute()

        try:
            return await asyncio.to_thread(_execute)
        except StoreError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise StoreError(f"{action} on {table} failed: {_error_message(exc)}") from exc

    async def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        response = await self._run("insert", table, lambda: self._client.table(table).insert(row))
        data = response.data or []
        if not data:
            raise StoreError(f"insert on {table} returned no row")
        return data[0]

    async def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: Sequence[FilterClause] = (),
        or_filters: Sequence[FilterClause] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        def _build() -> Any:
            query = _apply_filters(self._client.table(table).select(columns), filters)
            if or_filters:
                query = query.or_(",".join(clause.to_postgrest() for clause in or_filters))
            if order_by:
                query = query.order(order_by, desc=descending)
            if limit is not None:
                query = query.limit(limit)
            return query

        response = await self._run("select", table, _build)
        return list(response.data or [])

    async def count(self, table: str, *, filters: Sequence[FilterClause] = ()) -> int:
        response = await self._run(
            "count",
            table,
            lambda: _apply_filters(self._client.table(table).select("*", count="exact", head=True), filters),
        )
        return int(response.count or 0)

    async def update(
        self, table: str, values: Dict[str, Any], *, filters: Sequence[FilterClause]
    ) -> List[Dict[str, Any]]:
        if not filters:
            raise StoreError(f"update on {table} requires at least one filter")
        response = await self._run(
            "update", table, lambda: _apply_filters(self._client.table(table).update(values), filters)
        )
        return list(response.data or [])

    async def delete(self, table: str, *, filters: Sequence[FilterClause]) -> List[Dict[str, Any]]:
        if not filters:
            raise StoreError(f"delete on {table} requires at least one filter")
        response = await self._run(
            "delete", table, lambda: _apply_filters(self._client.table(table).delete(), filters)
        )
        return list(response.data or [])


def connect_store(connection: StoreConnection | None) -> RecordStore:
    if connection is None or not connection.is_complete():
        raise ConfigurationError("Record store connection is not configured")
    try:
        client = create_client(connection.url, connection.key)
    except Exception as exc:  # noqa: BLE001
        raise ConfigurationError(f"Could not connect to record store: {_error_message(exc)}") from exc
    return SupabaseRecordStore(client)


_app_store: Optional[RecordStore] = None


def get_app_connection() -> StoreConnection | None:
    if not settings.supabase_url or not settings.supabase_key:
        return None
    return StoreConnection(url=settings.supabase_url, key=settings.supabase_key)


def get_app_store() -> RecordStore:
    """Store that receives task-tracking rows, built lazily from settings."""

    global _app_store
    if _app_store is None:
        _app_store = connect_store(get_app_connection())
    return _app_store


# Test helper to inject a fake store
def _set_app_store_for_tests(store: RecordStore | None) -> None:
    global _app_store
    _app_store = store


async def resolve_user_connection(
    user_id: str, app_store: RecordStore | None = None
) -> StoreConnection | None:
    """The user's default store connection, read from ``user_scraping_configs``.

    Returns None when the user has no default row or the lookup fails; callers
    treat both as "connection not configured".
    """

    store = app_store or get_app_store()
    try:
        rows = await store.select(
            USER_CONFIGS_TABLE,
            columns="supabase_url, supabase_key",
            filters=[FilterClause("user_id", "eq", user_id), FilterClause("is_default", "eq", True)],
            limit=1,
        )
    except StoreError as exc:
        logger.warning("Store connection lookup failed user=%s: %s", user_id, exc.message)
        return None
    if not rows:
        return None
    row = rows[0]
    return StoreConnection(url=row.get("supabase_url") or "", key=row.get("supabase_key") or "")
