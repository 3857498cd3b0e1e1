from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional, Protocol, Sequence

FilterOp = Literal["eq", "ilike"]


@dataclass(frozen=True)
class FilterClause:
    field: str
    op: FilterOp
    value: Any

    def to_postgrest(self) -> str:
        return f"{self.field}.{self.op}.{self.value}"


@dataclass(frozen=True)
class StoreConnection:
    """Endpoint and credential of a record store, resolved outside the core."""

    url: str
    key: str

    def is_complete(self) -> bool:
        return bool(self.url and self.key)


class RecordStore(Protocol):
    """Insert/select/update/delete over named tables.

    ``or_filters`` are combined with OR; ``filters`` are combined with AND.
    Every failure surfaces as ``StoreError``.
    """

    async def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]: ...

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
    ) -> List[Dict[str, Any]]: ...

    async def count(self, table: str, *, filters: Sequence[FilterClause] = ()) -> int: ...

    async def update(
        self, table: str, values: Dict[str, Any], *, filters: Sequence[FilterClause]
    ) -> List[Dict[str, Any]]: ...

    async def delete(self, table: str, *, filters: Sequence[FilterClause]) -> List[Dict[str, Any]]: ...
