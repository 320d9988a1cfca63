"""Cached record query and cache inspection routes."""

from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from constants import TTL_PRESETS
from core.container import container
from core.logging import get_logger
from services.cache import CacheStore, RequestCacheStatus
from services.filters import FilterValidationError, get_available_operators
from services.records import RecordQueryService
from services.refill import RefillError

logger = get_logger(__name__)
router = APIRouter(prefix="/api", tags=["records"])

MutationLevel = Literal["high_mutation", "medium_mutation", "low_mutation", "very_low_mutation"]


class SortSpec(BaseModel):
    field: str
    direction: Literal["asc", "desc"] = "asc"


class RecordQueryRequest(BaseModel):
    filter: Optional[Dict[str, Any]] = None
    sort: List[SortSpec] = Field(default_factory=list)
    limit: Optional[int] = Field(default=None, ge=0)
    offset: Optional[int] = Field(default=None, ge=0)
    fields: Optional[List[str]] = None
    ttl_seconds: Optional[int] = Field(default=None, ge=60)
    mutation_level: Optional[MutationLevel] = None

    def effective_ttl(self) -> Optional[int]:
        if self.ttl_seconds is not None:
            return self.ttl_seconds
        if self.mutation_level:
            return TTL_PRESETS[self.mutation_level]
        return None


def _request_status(request: Request) -> RequestCacheStatus:
    status = getattr(request.state, "cache_status", None)
    if status is None:
        status = RequestCacheStatus()
        request.state.cache_status = status
    return status


@router.post("/tables/{table_id}/records/query")
async def query_records(
    table_id: str,
    body: RecordQueryRequest,
    request: Request,
    service: RecordQueryService = Depends(lambda: container.record_service())
):
    """Filtered, sorted, paginated records served from the table cache."""
    try:
        page = await service.list_records(
            table_id,
            filter=body.filter,
            sort=[s.model_dump() for s in body.sort],
            limit=body.limit,
            offset=body.offset,
            fields=body.fields,
            status=_request_status(request),
            ttl_seconds=body.effective_ttl(),
        )
    except FilterValidationError as e:
        logger.warning("Rejected filter", table_id=table_id, error=str(e))
        raise HTTPException(status_code=400, detail=str(e))
    except RefillError as e:
        raise HTTPException(status_code=502, detail=str(e))

    return {"success": True, **page.to_dict()}


@router.post("/cache/{table_id}/refresh")
async def refresh_table_cache(
    table_id: str,
    refetch: bool = False,
    structure_changed: bool = True,
    service: RecordQueryService = Depends(lambda: container.record_service())
):
    """Invalidate a table, optionally refilling it from the remote API now."""
    try:
        result = await service.refresh_table(table_id, refetch=refetch,
                                             structure_changed=structure_changed)
    except RefillError as e:
        raise HTTPException(status_code=502, detail=str(e))

    return {"success": True, **result}


@router.get("/cache/status")
async def cache_status(
    table_id: Optional[str] = None,
    store: CacheStore = Depends(lambda: container.cache_store())
):
    """Cached tables with expiry and time remaining."""
    return {"success": True, **(await store.status(table_id))}


@router.get("/cache/performance")
async def cache_performance(
    table_id: Optional[str] = None,
    store: CacheStore = Depends(lambda: container.cache_store())
):
    """Hit/miss counters since process start."""
    return {"success": True, **store.performance(table_id)}


@router.get("/filters/operators")
async def filter_operators():
    """Supported comparison operators and the condition each compiles to."""
    return {"success": True, "operators": get_available_operators()}
