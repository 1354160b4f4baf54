"""Celery tasks executed by the SMS worker."""

from __future__ import annotations

import logging
from functools import lru_cache

from ..config import get_settings
from ..models.session import get_session_factory
from ..providers.twilio_sms import TwilioSmsClient
from .celery_app import celery_app
from .queue import SmsJob
from .sms import SmsDeliveryWorker

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_sms_worker() -> SmsDeliveryWorker:
    settings = get_settings()
    return SmsDeliveryWorker(
        get_session_factory(),
        TwilioSmsClient(settings.twilio),
        otp_settings=settings.otp,
    )


@celery_app.task(
    bind=True,
    name="contact_center.send_otp_sms",
    acks_late=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_jitter=True,
    max_retries=get_settings().queue.max_retries,
)
def send_otp_sms(self, job: SmsJob) -> str | None:
    logger.info(
        "SMS job %s for challenge %s (attempt %d)",
        self.request.id,
        job.get("otp_challenge_id"),
        self.request.retries + 1,
    )
    return get_sms_worker().process(job)


__all__ = ["get_sms_worker", "send_otp_sms"]
