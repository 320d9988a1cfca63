"""Per-request cache hit tracking middleware."""

import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from core.logging import bind_request_context, clear_request_context, get_logger
from services.cache import RequestCacheStatus

logger = get_logger(__name__)

CACHE_HEADER = "X-Cache"


class CacheStatusMiddleware(BaseHTTPMiddleware):
    """Attach a fresh RequestCacheStatus to every request.

    After the response, logs the request with its cache outcome and sets the
    X-Cache header when the request touched the cache.
    """

    async def dispatch(self, request: Request, call_next):
        status = RequestCacheStatus()
        request.state.cache_status = status
        bind_request_context(request_id=uuid.uuid4().hex[:12], path=request.url.path)
        start_time = time.time()

        try:
            response = await call_next(request)

            if status.decided:
                response.headers[CACHE_HEADER] = status.header_value
                logger.info("Request completed",
                            method=request.method,
                            status_code=response.status_code,
                            cache_hit=status.hit,
                            duration_seconds=round(time.time() - start_time, 4))
            return response
        finally:
            clear_request_context()
