"""Table cache package.

SQLite mirror of remote tables with:
- Per-table TTL metadata and atomic refresh
- Field-type aware SQL rendering over JSON record documents
- Per-request cache hit tracking
"""

from .clauses import ClauseBuilder, sanitize_field_name
from .query import CacheQuery
from .store import CacheStore
from .tracker import RequestCacheStatus

__all__ = [
    "ClauseBuilder",
    "sanitize_field_name",
    "CacheQuery",
    "CacheStore",
    "RequestCacheStatus",
]
