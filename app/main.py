from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.responses import JSONResponse, Response

from app.api.account import router as account_router
from app.api.archive import router as archive_router
from app.api.auth import router as auth_router
from app.api.billing import router as billing_router
from app.api.webhooks import router as webhooks_router
from app.config import settings, validate_settings
from app.db import SessionLocal
from app.errors import register_error_handlers
from app.logging import configure_logging
from app.middleware.auth_gate import AuthGateMiddleware
from app.observability import ObservabilityMiddleware
from app.services.archive_cache import RedisCacheBackend, create_archive_cache
from app.services.archive_proxy import ArchiveProxy
from app.services.identity import SupabaseAuth
from app.telemetry import setup_otel

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):  # type: ignore[arg-type]
    # ── Startup ──────────────────────────────────────────
    warnings = validate_settings(settings)
    for w in warnings:
        logger.warning("Config warning: %s", w)

    http_client = httpx.AsyncClient(follow_redirects=True)
    archive_cache = create_archive_cache(settings)
    app.state.http_client = http_client
    app.state.identity = SupabaseAuth(
        http_client,
        settings.supabase_url,
        settings.supabase_anon_key,
        settings.supabase_service_role_key,
    )
    app.state.archive_proxy = ArchiveProxy(
        archive_cache,
        http_client,
        settings.chronam_base_url,
        timeout=settings.chronam_timeout_seconds,
    )

    logger.info("Application started (pid=%s)", os.getpid())
    yield

    # ── Shutdown ─────────────────────────────────────────
    logger.info("Application shutting down")
    if isinstance(archive_cache.backend, RedisCacheBackend):
        await archive_cache.backend.close()
    await http_client.aclose()


app = FastAPI(title="Chronam Gate API", lifespan=lifespan)

configure_logging()
setup_otel(app)

# ── Middleware (order matters: last added = first executed) ──
register_error_handlers(app)

cors_origins = [
    o.strip()
    for o in settings.cors_origins.split(",")
    if o.strip()
]
if cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-Id", "X-Cache-Status"],
    )

app.add_middleware(AuthGateMiddleware)
app.add_middleware(ObservabilityMiddleware)

app.include_router(auth_router)
app.include_router(account_router)
app.include_router(archive_router)
app.include_router(billing_router)
app.include_router(webhooks_router)


# ── Health Checks ────────────────────────────────────────


@app.get("/health")
def health_check() -> dict[str, str]:
    """Liveness probe: ok whenever the process is serving."""
    return {"status": "ok"}


def _check_database() -> str:
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        return "ok"
    finally:
        db.close()


@app.get("/health/ready")
async def readiness_check(request: Request) -> JSONResponse:
    """Readiness probe: database, plus Redis when it backs the archive cache."""
    checks: dict[str, str] = {}

    try:
        checks["database"] = await run_in_threadpool(_check_database)
    except SQLAlchemyError as e:
        checks["database"] = f"error: {e.__class__.__name__}"

    proxy = getattr(request.app.state, "archive_proxy", None)
    backend = proxy.cache.backend if proxy is not None else None
    if isinstance(backend, RedisCacheBackend):
        try:
            await backend.ping()
            checks["redis"] = "ok"
        except RedisError as e:
            checks["redis"] = f"error: {e.__class__.__name__}"

    all_ok = all(v == "ok" for v in checks.values())
    return JSONResponse(
        status_code=200 if all_ok else 503,
        content={"status": "ok" if all_ok else "degraded", "checks": checks},
    )


@app.get("/metrics")
def metrics() -> Response:
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
