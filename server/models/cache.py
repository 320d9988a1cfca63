"""SQLite-backed mirror of remote tables with per-table TTL.

One CacheMetadata row per table points at the row set currently published
for it (``storage_identifier``). A refresh writes a new row set under a fresh
identifier and repoints the metadata in the same transaction, so readers that
join through the metadata never observe a half-written table.
"""

import time
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


class CacheMetadata(SQLModel, table=True):
    """TTL entry for one mirrored table.

    Invariant: expires_at == cached_at + ttl_seconds.
    """

    __tablename__ = "cache_metadata"

    table_id: str = Field(primary_key=True, max_length=255)
    storage_identifier: str = Field(max_length=300, index=True)
    cached_at: float = Field(default_factory=time.time)  # Unix timestamp
    expires_at: float = Field(index=True)  # Unix timestamp
    ttl_seconds: int
    record_count: int = Field(default=0)

    def is_expired(self, now: Optional[float] = None) -> bool:
        return (time.time() if now is None else now) >= self.expires_at

    def time_remaining(self, now: Optional[float] = None) -> int:
        """Seconds until expiry, never negative."""
        remaining = self.expires_at - (time.time() if now is None else now)
        return max(0, int(remaining))

    def to_status(self, now: Optional[float] = None) -> Dict[str, Any]:
        now = time.time() if now is None else now
        return {
            "table_id": self.table_id,
            "record_count": self.record_count,
            "cached_at": self.cached_at,
            "expires_at": self.expires_at,
            "ttl_seconds": self.ttl_seconds,
            "time_remaining": self.time_remaining(now),
            "is_valid": not self.is_expired(now),
        }


class CacheRecord(SQLModel, table=True):
    """One mirrored remote record, stored as its JSON document."""

    __tablename__ = "cache_records"

    id: Optional[int] = Field(default=None, primary_key=True)
    storage_identifier: str = Field(max_length=300, index=True)
    record_id: str = Field(max_length=255)
    data: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
