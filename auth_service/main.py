"""FastAPI application wiring for the auth service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from psycopg_pool import ConnectionPool

from .api.routes import router as auth_router
from .config import get_settings
from .notifications import BackgroundNotifier, SmtpNotifier
from .repository import AccountRepository
from .wiring import build_rate_limiter, build_services

settings = get_settings()
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialise shared resources (Postgres pool, mailer, services) for the app lifecycle."""
    pool = ConnectionPool(settings.database_url, open=False)
    pool.open()
    notifier = BackgroundNotifier(SmtpNotifier(settings))
    app.state.pool = pool
    app.state.services = build_services(settings, AccountRepository(pool), notifier)
    app.state.rate_limiter = build_rate_limiter(settings)
    try:
        yield
    finally:
        notifier.shutdown(wait=True)
        pool.close()


app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=600,
)


@app.get("/healthz", tags=["health"])
def healthz() -> dict[str, str]:
    """Return a minimal readiness indicator used by orchestration systems."""
    return {"status": "ok"}


@app.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.include_router(auth_router)
