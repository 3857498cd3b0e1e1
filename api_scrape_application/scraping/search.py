from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..constants import DEFAULT_SEARCH_LIMIT, JOBS_TABLE, SEARCH_FIELD_GROUPS
from ..services.store import FilterClause, RecordStore
from .exceptions import StoreError

logger = logging.getLogger("scrape.search")


def _clean_query(query: str | None) -> str:
    # Commas separate clauses in OR expressions.
    return (query or "").replace(",", " ").strip()


def expand_aliases(query: str, aliases: Mapping[str, str]) -> List[str]:
    """Canonical site tags whose alias appears anywhere in ``query``."""

    tags: List[str] = []
    for alias, tag in aliases.items():
        if alias and alias in query and tag not in tags:
            tags.append(tag)
    return tags


def build_search_groups(
    query: str | None,
    aliases: Mapping[str, str] | None = None,
    *,
    field_groups: Sequence[Sequence[str]] = SEARCH_FIELD_GROUPS,
) -> List[List[FilterClause]]:
    cleaned = _clean_query(query)
    if not cleaned:
        return []
    pattern = f"%{cleaned}%"
    tags = expand_aliases(cleaned, aliases or {})
    groups: List[List[FilterClause]] = []
    for fields in field_groups:
        clauses = [FilterClause(field, "ilike", pattern) for field in fields]
        clauses.extend(FilterClause("source_website", "eq", tag) for tag in tags)
        groups.append(clauses)
    return groups


async def _list_jobs(
    store: RecordStore, limit: int, or_filters: Sequence[FilterClause] = ()
) -> List[Dict[str, Any]]:
    return await store.select(
        JOBS_TABLE,
        or_filters=or_filters,
        order_by="created_at",
        descending=True,
        limit=limit,
    )


async def search_jobs(
    store: RecordStore,
    query: str | None = None,
    *,
    aliases: Mapping[str, str] | None = None,
    limit: int = DEFAULT_SEARCH_LIMIT,
) -> List[Dict[str, Any]]:
    """Newest jobs, optionally filtered by a free-text query.

    Each field group is tried widest first; a group that errors (typically a
    column missing from the remote schema) is skipped. When every group errors
    the unfiltered listing is returned. Errors from that listing propagate.
    """

    groups = build_search_groups(query, aliases)
    for index, group in enumerate(groups):
        logger.debug("Trying search group %s: %s", index, describe_group(group))
        try:
            return await _list_jobs(store, limit, group)
        except StoreError as exc:
            logger.info("Search group %s failed for query=%r: %s", index, query, exc)
    if groups:
        logger.warning("All search groups failed for query=%r; listing without a filter", query)
    return await _list_jobs(store, limit)


async def job_stats(store: RecordStore) -> Dict[str, int]:
    """Totals over the whole jobs table, independent of any search query."""

    total = await store.count(JOBS_TABLE)
    sources = await store.select(JOBS_TABLE, columns="source_website")
    distinct = {row.get("source_website") for row in sources if row.get("source_website")}
    return {"total_count": total, "distinct_source_count": len(distinct)}


def describe_group(group: Sequence[FilterClause]) -> Optional[str]:
    if not group:
        return None
    return ",".join(clause.to_postgrest() for clause in group)
