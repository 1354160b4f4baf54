"""Celery application for the SMS delivery worker.

Start it with::

    celery -A contact_center.worker.celery_app worker --loglevel=info

Concurrency defaults to ``SMS_WORKER_CONCURRENCY`` (5).
"""

from __future__ import annotations

from celery import Celery
from celery.signals import setup_logging
from dotenv import load_dotenv

from ..app_logging import init_logging
from ..config import get_settings

load_dotenv()

_settings = get_settings()

celery_app = Celery(
    "contact_center",
    broker=_settings.queue.broker_url,
    backend=_settings.queue.result_backend,
    include=["contact_center.worker.tasks"],
)
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    worker_concurrency=_settings.queue.concurrency,
    timezone="UTC",
)


@setup_logging.connect
def _configure_logging(**_kwargs) -> None:
    init_logging()


app = celery_app

__all__ = ["app", "celery_app"]
