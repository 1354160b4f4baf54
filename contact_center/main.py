"""FastAPI application wiring for the contact-center back office.

- Configures logging, optional CORS for the dashboard, Prometheus metrics and
  per-IP rate limiting.
- Mounts the provider webhooks under ``/webhooks`` and the dashboard API
  under ``/api``.
- Starts the periodic voice sync when ``SYNC_ENABLED`` is true.
"""

import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .__version__ import __build_date__, __commit_sha__, __version__
from .app_logging import init_logging
from .core.limits import limiter
from .core.services import get_sync_service
from .models.session import get_session_factory
from .routers import customers, interactions, messaging, otp, sync, voice, webhooks
from .sync.scheduler import init_scheduler

load_dotenv()

logger = logging.getLogger(__name__)

app = FastAPI(title="Contact Center", version=__version__)
init_logging(app)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)
# Optional CORS for the dashboard
dashboard_origins = os.getenv("DASHBOARD_ORIGINS")
if dashboard_origins:
    origins = [o.strip() for o in dashboard_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
app.include_router(webhooks.router)
app.include_router(interactions.router)
app.include_router(customers.router)
app.include_router(otp.router)
app.include_router(messaging.router)
app.include_router(voice.router)
app.include_router(sync.router)

# Expose Prometheus metrics
Instrumentator().instrument(app).expose(
    app, include_in_schema=False, endpoint="/api/metrics"
)

init_scheduler(app, get_sync_service)


@app.get("/api/health")
def health():
    """Readiness probe: reports whether the database answers ``SELECT 1``."""
    try:
        with get_session_factory()() as session:
            session.execute(text("SELECT 1"))
    except (RuntimeError, SQLAlchemyError) as exc:
        logger.error("Health check failed: %s", exc)
        raise HTTPException(
            status_code=503, detail={"status": "error", "database": "unavailable"}
        ) from exc
    return {"status": "ok", "database": "ok"}


@app.get("/api/version")
def version():
    """Return version information for the application."""
    return {
        "version": __version__,
        "build_date": __build_date__,
        "commit_sha": __commit_sha__,
    }
