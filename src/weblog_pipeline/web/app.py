"""
HTTP API serving aggregated access-log statistics.

Endpoints:
    GET /api/websites             configured sites (id, name)
    GET /api/stats/{stats_type}   statistics for one site and time range
    GET /health                   storage backend health
"""

import logging
import time
from typing import Sequence

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..config import SiteConfig
from ..reporting import StatsQueries, StatsQueryError
from ..storage import StorageBackend, StorageError

logger = logging.getLogger(__name__)

# API requests slower than this are logged as warnings
SLOW_REQUEST_SECONDS = 0.1


def create_app(
    sites: Sequence[SiteConfig],
    stats: StatsQueries,
    backend: StorageBackend,
) -> FastAPI:
    """
    Build the FastAPI application.

    Handlers are plain functions, so FastAPI runs them on its worker
    threadpool; the storage backend serializes access to its connection.
    """
    app = FastAPI(title="weblog-pipeline")
    site_list = list(sites)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["Origin", "Content-Type", "Authorization"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start
        path = request.url.path
        client = request.client.host if request.client else "-"

        if response.status_code >= 400:
            logger.warning(
                f"HTTP {response.status_code} {request.method} {path} "
                f"{client} {duration * 1000:.1f}ms"
            )
        elif path.startswith("/api/") and duration > SLOW_REQUEST_SECONDS:
            logger.warning(
                f"Slow request {request.method} {path} {response.status_code} "
                f"{client} {duration * 1000:.1f}ms"
            )
        return response

    @app.get("/api/websites")
    def list_websites():
        return {"websites": [{"id": s.id, "name": s.name} for s in site_list]}

    @app.get("/api/stats/{stats_type}")
    def get_stats(stats_type: str, request: Request):
        params = dict(request.query_params)
        try:
            query = stats.build_query(stats_type, params)
            return stats.query_stats(stats_type, query)
        except StatsQueryError as e:
            return JSONResponse(status_code=400, content={"error": str(e)})
        except StorageError as e:
            logger.error(f"Statistics query '{stats_type}' failed: {e}")
            return JSONResponse(
                status_code=500, content={"error": f"Query failed: {e}"}
            )

    @app.get("/health")
    def health():
        status = backend.health_check()
        code = 200 if status.get("healthy") else 503
        return JSONResponse(status_code=code, content=status)

    return app
