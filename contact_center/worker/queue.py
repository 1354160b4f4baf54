"""Job queue seam between the OTP manager and the SMS delivery worker."""

from __future__ import annotations

import logging
from typing import Any, Protocol, TypedDict

logger = logging.getLogger(__name__)


class SmsJob(TypedDict, total=False):
    """Payload of one OTP SMS delivery job.

    ``otp`` is the only place the plaintext code exists after creation.
    """

    otp_challenge_id: str
    interaction_id: str
    phone: str
    purpose: str
    otp: str
    template_data: dict[str, Any]


class JobQueue(Protocol):
    def enqueue(self, job: SmsJob) -> str | None:
        """Schedule ``job`` for at-least-once delivery; return the job id."""


class InMemoryJobQueue:
    """Queue that keeps jobs in a list; used in tests and local tooling."""

    def __init__(self) -> None:
        self.jobs: list[SmsJob] = []

    def enqueue(self, job: SmsJob) -> str | None:
        self.jobs.append(job)
        return str(len(self.jobs))


class CeleryJobQueue:
    """Enqueue jobs onto the Celery broker consumed by the SMS worker."""

    def enqueue(self, job: SmsJob) -> str | None:
        from .tasks import send_otp_sms

        result = send_otp_sms.delay(dict(job))
        logger.info("Enqueued SMS job %s for challenge %s", result.id, job.get("otp_challenge_id"))
        return result.id


__all__ = ["CeleryJobQueue", "InMemoryJobQueue", "JobQueue", "SmsJob"]
