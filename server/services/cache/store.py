"""TTL-governed SQLite mirror of remote tables.

Lifecycle per table:
    absent  -> refresh() -> fresh -> (ttl elapses) -> expired -> refresh() -> fresh

refresh() is the only path that writes rows. It writes the new rows under a fresh
storage identifier, repoints the metadata and drops the previous rows in one
transaction. Refreshes of the same table are serialised by a per-table lock;
different tables never contend.

invalidate() only expires an entry (and optionally forgets its schema); the
expired rows stay readable until the next refresh replaces them.
"""

import asyncio
import time
import uuid
from collections import defaultdict
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy import delete
from sqlmodel import select

from constants import TTL_PRESETS
from core.config import Settings
from core.database import Database
from core.logging import get_logger, log_cache_operation
from models.cache import CacheMetadata, CacheRecord
from models.filters import TableSchema
from .clauses import ClauseBuilder
from .query import CacheQuery

logger = get_logger(__name__)


class CacheStore:
    """Per-table TTL cache backed by the application database.

    Refresh locks, schema snapshots and hit/miss counters live in memory and
    are keyed by table id. They are never pruned: one small entry per table
    ever seen, which stays bounded by the number of remote tables the
    process serves. invalidate() drops the schema snapshot only.
    """

    TTL_PRESETS = TTL_PRESETS

    def __init__(self, database: Database, settings: Settings,
                 clock: Optional[Callable[[], float]] = None):
        self.database = database
        self.default_ttl = settings.cache_ttl
        self._clock = clock or time.time
        self._refresh_locks: Dict[str, asyncio.Lock] = {}
        self._schemas: Dict[str, TableSchema] = {}
        self._hits: Dict[str, int] = defaultdict(int)
        self._misses: Dict[str, int] = defaultdict(int)

    def now(self) -> float:
        return self._clock()

    def _lock_for(self, table_id: str) -> asyncio.Lock:
        lock = self._refresh_locks.get(table_id)
        if lock is None:
            lock = self._refresh_locks[table_id] = asyncio.Lock()
        return lock

    def ttl_for(self, mutation_level: Optional[str]) -> int:
        """TTL for a mutation level preset, the default TTL otherwise."""
        return self.TTL_PRESETS.get(mutation_level or "", self.default_ttl)

    # =========================================================================
    # LOOKUP
    # =========================================================================

    async def _load(self, table_id: str) -> Optional[CacheMetadata]:
        async with self.database.get_session() as session:
            return await session.get(CacheMetadata, table_id)

    async def get(self, table_id: str) -> Optional[CacheMetadata]:
        """Metadata if the table is cached and fresh, None on a miss.

        Expired entries are reported as misses but not evicted.
        """
        entry = await self._load(table_id)
        now = self.now()

        if entry is None or entry.is_expired(now):
            self._misses[table_id] += 1
            log_cache_operation(logger, "get", table_id, hit=False,
                                expired=entry is not None)
            return None

        self._hits[table_id] += 1
        log_cache_operation(logger, "get", table_id, hit=True,
                            time_remaining=entry.time_remaining(now))
        return entry

    async def time_remaining(self, table_id: str) -> int:
        """Seconds until the table expires, 0 when absent or expired."""
        entry = await self._load(table_id)
        if entry is None:
            return 0
        return entry.time_remaining(self.now())

    # =========================================================================
    # REFRESH
    # =========================================================================

    async def refresh(self, table_id: str, records: Iterable[Dict[str, Any]],
                      ttl_seconds: Optional[int] = None,
                      schema: Optional[TableSchema] = None) -> CacheMetadata:
        """Replace a table's rows and restart its TTL.

        Args:
            table_id: Remote table identifier
            records: Remote record documents (each with an "id")
            ttl_seconds: TTL for this entry, settings default when None
            schema: Field structure snapshot to remember for compilation

        Returns:
            The published metadata
        """
        ttl = int(self.default_ttl if ttl_seconds is None else ttl_seconds)
        if ttl <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl}")

        rows = [dict(record) for record in records]

        async with self._lock_for(table_id):
            now = self.now()
            storage_identifier = f"{table_id}:{uuid.uuid4().hex}"

            try:
                async with self.database.get_session() as session:
                    entry = await session.get(CacheMetadata, table_id)
                    previous_storage = entry.storage_identifier if entry else None

                    session.add_all([
                        CacheRecord(
                            storage_identifier=storage_identifier,
                            record_id=str(row.get("id", "")),
                            data=row,
                        )
                        for row in rows
                    ])

                    if entry is None:
                        entry = CacheMetadata(table_id=table_id,
                                              storage_identifier=storage_identifier,
                                              cached_at=now,
                                              expires_at=now + ttl,
                                              ttl_seconds=ttl,
                                              record_count=len(rows))
                        session.add(entry)
                    else:
                        entry.storage_identifier = storage_identifier
                        entry.cached_at = now
                        entry.expires_at = now + ttl
                        entry.ttl_seconds = ttl
                        entry.record_count = len(rows)

                    if previous_storage:
                        await session.execute(
                            delete(CacheRecord).where(
                                CacheRecord.storage_identifier == previous_storage
                            )
                        )

                    await session.commit()

            except Exception as e:
                logger.error("Cache refresh failed", table_id=table_id, error=str(e))
                raise

        if schema is not None:
            self.remember_schema(table_id, schema)

        log_cache_operation(logger, "refresh", table_id,
                            records=len(rows), ttl_seconds=ttl)
        return entry

    async def invalidate(self, table_id: str, structure_changed: bool = True) -> bool:
        """Expire a table so the next lookup is a miss.

        Args:
            table_id: Remote table identifier
            structure_changed: Also forget the schema snapshot, so the next
                refill fetches the field structure again

        Returns:
            True if the table had a cache entry
        """
        async with self._lock_for(table_id):
            async with self.database.get_session() as session:
                entry = await session.get(CacheMetadata, table_id)
                if entry is not None:
                    entry.expires_at = entry.cached_at
                    entry.ttl_seconds = 0
                    await session.commit()

        if structure_changed:
            self._schemas.pop(table_id, None)

        log_cache_operation(logger, "invalidate", table_id,
                            found=entry is not None, structure_changed=structure_changed)
        return entry is not None

    # =========================================================================
    # QUERY & SCHEMA
    # =========================================================================

    def remember_schema(self, table_id: str, schema: TableSchema) -> None:
        self._schemas[table_id] = schema

    def schema(self, table_id: str) -> Optional[TableSchema]:
        return self._schemas.get(table_id)

    def query(self, table_id: str) -> CacheQuery:
        return CacheQuery(self.database, table_id, ClauseBuilder(self.schema(table_id)))

    # =========================================================================
    # STATUS & PERFORMANCE
    # =========================================================================

    async def status(self, table_id: Optional[str] = None) -> Dict[str, Any]:
        """Cached tables with record counts, expiry and validity."""
        now = self.now()
        async with self.database.get_session() as session:
            stmt = select(CacheMetadata).order_by(CacheMetadata.table_id)
            if table_id:
                stmt = stmt.where(CacheMetadata.table_id == table_id)
            result = await session.execute(stmt)
            entries: List[CacheMetadata] = list(result.scalars().all())

        return {
            "timestamp": now,
            "tables": [entry.to_status(now) for entry in entries],
        }

    def performance(self, table_id: Optional[str] = None) -> Dict[str, Any]:
        """Hit/miss counters since process start."""
        if table_id:
            hits = self._hits.get(table_id, 0)
            misses = self._misses.get(table_id, 0)
        else:
            hits = sum(self._hits.values())
            misses = sum(self._misses.values())

        total = hits + misses
        return {
            "table_id": table_id,
            "hits": hits,
            "misses": misses,
            "total": total,
            "hit_rate": round(hits / total * 100, 2) if total else 0.0,
        }
