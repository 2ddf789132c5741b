"""Airbnb listings finder HTTP service.

This FastAPI app exposes:
- POST /api/search/listings   to collect listing summaries for a location
- POST /api/scrape/search     to search a location and scrape each listing in detail
- POST /api/scrape/listing    to scrape one listing by id
- POST /api/listing/hosts     to resolve a listing's host and co-hosts
- POST /api/cleanup           to kill orphaned Chromium processes
- /metrics for Prometheus and /health for liveness

Every job runs on its own render session; /api routes require a bearer token
when API_TOKENS is set.
"""

from __future__ import annotations

import asyncio
import datetime
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import Body, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import get_config
from .errors import JobValidationError
from .logging_setup import init_service_logger
from .metrics import REQUEST_COUNT, REQUEST_LATENCY
from .models import ResultEnvelope
from .service import ListingsService
from .supervision import count_browser_processes, kill_orphaned_browsers

SERVICE_NAME = "Airbnb Listings Finder"
SERVICE_VERSION = "1.0.0"

config = get_config()
service_logger = init_service_logger()

app = FastAPI(title=f"{SERVICE_NAME} API", version=SERVICE_VERSION)

listings_service: Optional[ListingsService] = None


def get_service() -> ListingsService:
    global listings_service
    if listings_service is None:
        listings_service = ListingsService(config=config, logger=service_logger.getChild("service"))
    return listings_service


def authenticate(request: Request) -> None:
    """Check the bearer token against API_TOKENS. A service without tokens is open."""
    if not config.security.auth_enabled:
        return
    header = request.headers.get("authorization")
    if not header:
        raise HTTPException(status_code=401, detail="Authentication required")
    token = header[len("Bearer "):] if header.startswith("Bearer ") else header
    if token.strip() not in config.security.api_tokens:
        raise HTTPException(status_code=403, detail="Invalid token")


async def run_job(job: Callable[[Any], Awaitable[ResultEnvelope]], payload: Any) -> JSONResponse:
    try:
        envelope = await job(payload)
    except JobValidationError as e:
        return JSONResponse(status_code=400, content=ResultEnvelope.failure(str(e)).to_dict())
    except Exception as e:
        service_logger.error(f"❌ Unhandled error in {job.__name__}: {e}")
        return JSONResponse(status_code=500, content=ResultEnvelope.failure(str(e)).to_dict())
    return JSONResponse(status_code=200 if envelope.success else 500, content=envelope.to_dict())


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.detail})


@app.middleware("http")
async def prometheus_middleware(request: Request, call_next):
    """Collect Prometheus metrics for each request."""
    endpoint = request.url.path
    method = request.method
    with REQUEST_LATENCY.labels(endpoint).time():
        response = await call_next(request)
    REQUEST_COUNT.labels(endpoint, method, response.status_code).inc()
    return response


@app.get("/health")
async def health() -> Dict[str, Any]:
    """Liveness probe with the current Chromium process count."""
    browser_count = await asyncio.to_thread(count_browser_processes)
    threshold = config.crawl.browser_process_warning_threshold
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        "authentication": "enabled" if config.security.auth_enabled else "disabled",
        "browserProcesses": browser_count,
        "warning": "High number of browser processes detected" if browser_count > threshold else None,
    }


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.post("/api/search/listings")
async def search_listings(request: Request, body: Optional[Dict[str, Any]] = Body(default=None)):
    authenticate(request)
    return await run_job(get_service().search_listings, body)


@app.post("/api/scrape/search")
async def scrape_search(request: Request, body: Optional[Dict[str, Any]] = Body(default=None)):
    authenticate(request)
    return await run_job(get_service().scrape_listings, body)


@app.post("/api/scrape/listing")
async def scrape_listing(request: Request, body: Optional[Dict[str, Any]] = Body(default=None)):
    authenticate(request)
    return await run_job(get_service().scrape_listing, body)


@app.post("/api/listing/hosts")
async def listing_hosts(request: Request, body: Optional[Dict[str, Any]] = Body(default=None)):
    authenticate(request)
    return await run_job(get_service().lookup_hosts, body)


@app.post("/api/cleanup")
async def cleanup(request: Request):
    """Kill Chromium processes left behind by crashed jobs."""
    authenticate(request)
    try:
        before = await asyncio.to_thread(count_browser_processes)
        service_logger.info(f"🧹 Browser processes before cleanup: {before}")
        killed = await asyncio.to_thread(
            kill_orphaned_browsers,
            spare_own_children=get_service().active_jobs > 0,
            logger=service_logger,
        )
        remaining = await asyncio.to_thread(count_browser_processes)
        service_logger.info(f"🧹 Browser processes after cleanup: {remaining}")
    except Exception as e:
        service_logger.error(f"❌ Cleanup failed: {e}")
        raise HTTPException(status_code=500, detail=f"Cleanup failed: {e}")

    return {
        "success": True,
        "message": "Cleanup completed",
        "processesKilled": killed,
        "remainingProcesses": remaining,
    }


@app.on_event("startup")
async def on_startup() -> None:
    service_logger.info(f"🚀 Starting {SERVICE_NAME} v{SERVICE_VERSION}")
    service_logger.info(f"Configuration: {config.get_configuration_summary()}")
    if not config.security.auth_enabled:
        service_logger.warning("⚠️ API_TOKENS is not set, /api routes are unauthenticated")
    get_service()


@app.on_event("shutdown")
async def on_shutdown() -> None:
    service_logger.info(f"Shutting down {SERVICE_NAME}...")
    remaining = await asyncio.to_thread(count_browser_processes)
    if remaining:
        service_logger.warning(f"⚠️ {remaining} browser processes still running at shutdown")


def run() -> None:
    import uvicorn

    uvicorn.run("listings_finder.main:app", host="0.0.0.0", port=config.system.service_port)


if __name__ == "__main__":
    run()
