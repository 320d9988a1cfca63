"""Cache-first record queries.

Request flow:
    cache lookup
        miss: fetch schema -> compile filter -> fetch all records -> refresh -> mark miss
        hit:  schema snapshot -> compile filter -> mark hit
    -> one page statement (records + total) against the mirror

Every refill fetches the field structure again, so a remote schema change is
picked up no later than the next expiry.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from core.logging import get_logger
from models.filters import TableSchema
from services.cache import CacheStore, RequestCacheStatus
from services.filters import FilterCompiler, FilterWarning
from services.refill import RefillProvider

logger = get_logger(__name__)


@dataclass
class RecordPage:
    """One page of query results."""
    table_id: str
    records: List[Dict[str, Any]]
    total_count: int
    cache_hit: bool
    time_remaining: int
    warnings: List[FilterWarning] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table_id": self.table_id,
            "records": self.records,
            "count": len(self.records),
            "total_count": self.total_count,
            "cache_hit": self.cache_hit,
            "time_remaining": self.time_remaining,
            "warnings": [w.to_dict() for w in self.warnings],
        }


class RecordQueryService:
    """Serves filtered, sorted, paginated queries from the table cache."""

    def __init__(self, store: CacheStore, compiler: FilterCompiler,
                 refill_provider: RefillProvider):
        self.store = store
        self.compiler = compiler
        self.refill_provider = refill_provider

    async def get_schema(self, table_id: str) -> TableSchema:
        schema = self.store.schema(table_id)
        if schema is None:
            schema = await self.refill_provider.fetch_schema(table_id)
            self.store.remember_schema(table_id, schema)
        return schema

    async def list_records(self, table_id: str,
                           filter: Optional[Dict[str, Any]] = None,
                           sort: Optional[List[Dict[str, str]]] = None,
                           limit: Optional[int] = None,
                           offset: Optional[int] = None,
                           fields: Optional[List[str]] = None,
                           status: Optional[RequestCacheStatus] = None,
                           ttl_seconds: Optional[int] = None) -> RecordPage:
        """Query a table through the cache.

        Args:
            table_id: Remote table identifier
            filter: Filter tree ({"operator": ..., "fields": [...]})
            sort: [{"field": slug, "direction": "asc"|"desc"}, ...]
            limit: Page size, None for all
            offset: Records to skip
            fields: Field slugs to return ("id" always included)
            status: Request cache status to mark hit/miss on
            ttl_seconds: TTL used if the table has to be refilled

        Returns:
            RecordPage

        Raises:
            FilterValidationError: Strict validation failure (before any refill)
        """
        status = status if status is not None else RequestCacheStatus()

        entry = await self.store.get(table_id)
        if entry is None:
            schema = await self.refill_provider.fetch_schema(table_id)
            self.store.remember_schema(table_id, schema)
        else:
            schema = await self.get_schema(table_id)

        compiled = self.compiler.compile(filter, schema)

        if entry is None:
            records = await self.refill_provider.fetch_records(table_id)
            entry = await self.store.refresh(table_id, records,
                                             ttl_seconds=ttl_seconds, schema=schema)
            status.mark_miss()
        else:
            status.mark_hit()

        query = self.store.query(table_id).apply(compiled)

        for item in sort or []:
            if item.get("field"):
                query.order(item["field"], item.get("direction") or "asc")

        records, total_count = await query.limit(limit).offset(offset).execute_page(fields=fields)

        logger.info("Records served",
                    table_id=table_id,
                    returned=len(records),
                    total=total_count,
                    cache_hit=status.hit,
                    warnings=len(compiled.warnings))

        return RecordPage(
            table_id=table_id,
            records=records,
            total_count=total_count,
            cache_hit=status.hit,
            time_remaining=entry.time_remaining(self.store.now()),
            warnings=compiled.warnings,
        )

    async def refresh_table(self, table_id: str, refetch: bool = False,
                            structure_changed: bool = True,
                            ttl_seconds: Optional[int] = None) -> Dict[str, Any]:
        """Force a table out of the cache.

        Without refetch the table is only invalidated and the next query
        refills it. With refetch the schema and records are pulled now.
        """
        found = await self.store.invalidate(table_id, structure_changed=structure_changed)
        if not refetch:
            return {"table_id": table_id, "invalidated": found, "refetched": False,
                    "time_remaining": 0}

        schema = await self.refill_provider.fetch_schema(table_id)
        records = await self.refill_provider.fetch_records(table_id)
        entry = await self.store.refresh(table_id, records, ttl_seconds=ttl_seconds, schema=schema)
        return {"table_id": table_id, "invalidated": found, "refetched": True,
                "time_remaining": entry.time_remaining(self.store.now())}
