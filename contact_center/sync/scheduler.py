"""APScheduler wiring for the periodic voice sync."""

from __future__ import annotations

import logging
from collections.abc import Callable

from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI

from ..config import SyncSettings, get_settings
from .service import SyncService

logger = logging.getLogger(__name__)

JOB_ID = "voice-sync"


def _scheduled_sync(service: SyncService) -> None:
    try:
        service.run_scheduled()
    except Exception:
        logger.exception("Scheduled voice sync failed")


def build_scheduler(service: SyncService, settings: SyncSettings) -> BackgroundScheduler:
    scheduler = BackgroundScheduler(timezone="UTC")
    # coalesce missed runs and never overlap within this process
    scheduler.add_job(
        _scheduled_sync,
        "interval",
        seconds=settings.interval_seconds,
        args=[service],
        id=JOB_ID,
        max_instances=1,
        coalesce=True,
    )
    return scheduler


def init_scheduler(app: FastAPI, service_factory: Callable[[], SyncService]) -> None:
    """Attach scheduler start/stop to the FastAPI lifecycle.

    ``service_factory`` is resolved at startup so importing the app does not
    require a database.
    """

    @app.on_event("startup")
    def _start_scheduler() -> None:
        settings = get_settings().sync
        if not settings.enabled:
            logger.info("Voice sync scheduler disabled (SYNC_ENABLED=false)")
            return
        scheduler = build_scheduler(service_factory(), settings)
        scheduler.start()
        app.state.scheduler = scheduler
        logger.info("Voice sync scheduled every %ds", settings.interval_seconds)

    @app.on_event("shutdown")
    def _stop_scheduler() -> None:
        scheduler = getattr(app.state, "scheduler", None)
        if scheduler is not None:
            scheduler.shutdown(wait=False)
            app.state.scheduler = None
