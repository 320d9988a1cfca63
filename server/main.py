"""
Table cache service: a local SQLite mirror of a rate-limited remote table API
with per-table TTL and filtered, sorted, paginated queries.
"""

import logging
from datetime import datetime
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse, ORJSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from core.container import container
from core.logging import configure_logging, get_logger
from middleware.cache_status import CacheStatusMiddleware
from routers import records

# Initialize settings and logging
settings = container.settings()
configure_logging(settings)
logger = get_logger(__name__)

# Suppress noisy loggers
logging.getLogger("uvicorn").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("uvicorn.error").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management."""
    logger.info("Starting table cache service")

    await container.database().startup()

    logger.info("Services started successfully",
                cache_ttl=settings.cache_ttl,
                timezone=settings.timezone or "local",
                strict_validation=settings.filter_strict_validation)
    yield

    await container.database().shutdown()
    logger.info("Services shutdown complete")


app = FastAPI(
    title="Table Cache Service",
    version="1.0.0",
    description="TTL-governed SQLite mirror of a remote table API with filter compilation",
    lifespan=lifespan,
    default_response_class=ORJSONResponse
)


class CatchAllExceptionsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error("Unhandled exception",
                         path=request.url.path,
                         error_type=type(e).__name__,
                         error=str(e),
                         exc_info=True)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "success": False,
                    "error": f"{type(e).__name__}: {str(e)}",
                    "detail": "Internal server error"
                }
            )


app.add_middleware(CacheStatusMiddleware)
# Outermost: added last
app.add_middleware(CatchAllExceptionsMiddleware)

app.include_router(records.router)


@app.get("/health")
async def health_check():
    """Health check."""
    return {
        "status": "OK",
        "service": "tablecache",
        "version": "1.0.0",
        "environment": "development" if settings.debug else "production",
        "database": settings.database_url.split("://")[0],
        "timestamp": datetime.now().isoformat()
    }


if __name__ == "__main__":
    import uvicorn
    logger.info("Starting table cache service",
               host=settings.host, port=settings.port, debug=settings.debug)
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="warning"
    )
