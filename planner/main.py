"""
Inventory planning service.

Serves the availability/rate planning grid and Channex row sync over HTTP.
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from .config import settings
from .database import create_tables
from .routers import health, planning
from .utils.logging_config import setup_logging, get_logger, set_request_context, clear_request_context

setup_logging(level=settings.log_level, json_format=settings.log_json)
logger = logging.getLogger(__name__)
request_logger = get_logger("planner.requests")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info(f"Starting planning service (environment={settings.environment}, store={settings.record_store_backend})")

    if settings.record_store_backend == "sql":
        create_tables()
    if not settings.has_channex_config:
        logger.warning("CHANNEX_API_KEY is not set; row sync requests will be rejected by Channex")

    yield

    logger.info("Planning service stopped")


app = FastAPI(
    title="Inventory Planning API",
    description="Availability and rate planning grid with Channex sync",
    version="1.0.0",
    lifespan=lifespan
)


# ================================
# CORS MIDDLEWARE - MUST BE FIRST!
# ================================
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)


# Request ID Middleware
class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4())[:8])
        request.state.request_id = request_id
        set_request_context(request_id)
        start = time.time()
        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            request_logger.api_request(
                request.method, request.url.path, response.status_code,
                round((time.time() - start) * 1000, 2)
            )
            return response
        finally:
            clear_request_context()


app.add_middleware(RequestIdMiddleware)


# Include routers
app.include_router(health.router)
app.include_router(planning.router)


@app.get("/")
async def root():
    return {
        "message": "Inventory Planning API",
        "version": "1.0.0",
        "docs": "/docs",
        "status": "running"
    }
