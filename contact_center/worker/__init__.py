"""SMS delivery worker and its job queue seam.

The Celery application lives in :mod:`contact_center.worker.celery_app` and is
imported lazily so the API can be used without a broker.
"""

from __future__ import annotations

from .queue import CeleryJobQueue, InMemoryJobQueue, JobQueue, SmsJob
from .sms import SmsDeliveryWorker

__all__ = ["CeleryJobQueue", "InMemoryJobQueue", "JobQueue", "SmsDeliveryWorker", "SmsJob"]
