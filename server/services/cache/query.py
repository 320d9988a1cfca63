"""Chainable query over one mirrored table.

Every read is a single SQL statement that joins the table's rows through its
metadata row, so a concurrent refresh is observed either entirely or not at
all. execute_page() returns a page together with its total from that one
statement (COUNT(*) OVER ()).
"""

import time
from typing import Any, Dict, Iterable, List, Optional, Tuple

import orjson

from core.database import Database
from core.logging import get_logger, log_execution_time
from models.filters import Condition
from .clauses import ClauseBuilder

logger = get_logger(__name__)

ROWS_SQL = (
    "SELECT r.data FROM cache_records AS r "
    "JOIN cache_metadata AS m ON m.storage_identifier = r.storage_identifier "
    "WHERE m.table_id = ?"
)

PAGE_SQL = (
    "SELECT r.data, COUNT(*) OVER () FROM cache_records AS r "
    "JOIN cache_metadata AS m ON m.storage_identifier = r.storage_identifier "
    "WHERE m.table_id = ?"
)

COUNT_SQL = (
    "SELECT COUNT(*) FROM cache_records AS r "
    "JOIN cache_metadata AS m ON m.storage_identifier = r.storage_identifier "
    "WHERE m.table_id = ?"
)


class CacheQuery:
    """Query builder: where / where_raw / apply / order / limit / offset.

    Example:
        records = await (store.query("tbl_1")
                         .where("status", Condition(ConditionKind.EQUAL, "active"))
                         .order("due_date", "desc")
                         .limit(10)
                         .execute(fields=["title"]))
    """

    def __init__(self, database: Database, table_id: str, builder: ClauseBuilder):
        self.database = database
        self.table_id = table_id
        self.builder = builder
        self._where: List[str] = []
        self._params: List[Any] = []
        self._order: List[str] = []
        self._limit: Optional[int] = None
        self._offset: Optional[int] = None

    def where(self, field_slug: str, condition: Condition) -> "CacheQuery":
        clause, params = self.builder.build_condition_sql(field_slug, condition)
        return self.where_raw(clause, params)

    def where_raw(self, clause: Optional[str], params: Iterable[Any] = ()) -> "CacheQuery":
        if clause:
            self._where.append(f"({clause})")
            self._params.extend(params)
        return self

    def apply(self, compiled) -> "CacheQuery":
        """Apply a CompiledFilter (flat conditions or a single raw clause)."""
        for field_slug, condition in compiled.conditions:
            self.where(field_slug, condition)
        if compiled.clause:
            self.where_raw(compiled.clause, compiled.params)
        return self

    def order(self, field_slug: str, direction: str = "asc") -> "CacheQuery":
        direction = "DESC" if str(direction).lower() == "desc" else "ASC"
        self._order.append(f"{self.builder.sort_accessor(field_slug)} {direction}")
        return self

    def limit(self, n: Optional[int]) -> "CacheQuery":
        self._limit = None if n is None else max(0, int(n))
        return self

    def offset(self, n: Optional[int]) -> "CacheQuery":
        self._offset = None if n is None else max(0, int(n))
        return self

    # =========================================================================
    # SQL
    # =========================================================================

    def _where_sql(self) -> str:
        return "".join(f" AND {clause}" for clause in self._where)

    def to_sql(self, with_total: bool = False) -> tuple:
        """Full statement and its parameters.

        with_total adds the unpaginated match count as a second column.
        """
        sql = (PAGE_SQL if with_total else ROWS_SQL) + self._where_sql()
        params: List[Any] = [self.table_id] + self._params

        order = self._order + ["r.id ASC"]
        sql += " ORDER BY " + ", ".join(order)

        # SQLite requires LIMIT when using OFFSET
        if self._limit is not None or self._offset is not None:
            sql += " LIMIT ?"
            params.append(-1 if self._limit is None else self._limit)
            if self._offset is not None:
                sql += " OFFSET ?"
                params.append(self._offset)

        return sql, params

    async def _fetch(self, sql: str, params: List[Any]) -> list:
        start_time = time.time()
        try:
            async with self.database.connect() as conn:
                result = await conn.exec_driver_sql(sql, tuple(params))
                rows = result.fetchall()
        except Exception as e:
            logger.error("Cache query failed", table_id=self.table_id, error=str(e))
            raise

        log_execution_time(logger, "cache_query", start_time, time.time(),
                           table_id=self.table_id, rows=len(rows))
        return rows

    @staticmethod
    def _project(rows: list, fields: Optional[List[str]]) -> List[Dict[str, Any]]:
        records = [orjson.loads(row[0]) for row in rows]
        if fields:
            wanted = set(fields) | {"id"}
            records = [{k: v for k, v in record.items() if k in wanted} for record in records]
        return records

    async def execute(self, fields: Optional[List[str]] = None) -> List[Dict[str, Any]]:
        """Run the query.

        Args:
            fields: Field slugs to keep in each record ("id" is always kept)

        Returns:
            Matching record documents
        """
        sql, params = self.to_sql()
        return self._project(await self._fetch(sql, params), fields)

    async def execute_page(self, fields: Optional[List[str]] = None) -> Tuple[List[Dict[str, Any]], int]:
        """Run the query and count all matches in the same statement.

        The records and the total always describe the same mirror contents.
        A page past the end has no row to carry the total, so it falls back
        to count(); its records are empty either way.

        Returns:
            (records, total_count)
        """
        sql, params = self.to_sql(with_total=True)
        rows = await self._fetch(sql, params)
        if not rows:
            return [], await self.count()
        return self._project(rows, fields), int(rows[0][1])

    async def count(self) -> int:
        """Number of matching records, ignoring limit/offset/order."""
        sql = COUNT_SQL + self._where_sql()
        params = [self.table_id] + self._params
        try:
            async with self.database.connect() as conn:
                result = await conn.exec_driver_sql(sql, tuple(params))
                return int(result.scalar() or 0)
        except Exception as e:
            logger.error("Cache count failed", table_id=self.table_id, error=str(e))
            raise
