"""OTP SMS delivery job handler.

The handler owns domain state only. On any failure it marks the challenge
and its interaction FAILED in a separate transaction and re-raises, leaving
retries and backoff to the queue.
"""

from __future__ import annotations

import datetime as dt
import logging
import uuid
from collections.abc import Callable

from sqlalchemy.orm import Session, sessionmaker

from ..audit import AuditLogger
from ..config import OtpSettings
from ..errors import NotFoundError
from ..interactions.store import InteractionStore
from ..models import OtpChallenge
from ..models.enums import Channel, Direction, InteractionStatus, OtpStatus, Provider
from ..models.session import session_scope
from ..phone import mask_phone
from ..providers.twilio_sms import TwilioSmsClient
from .queue import SmsJob
from .templates import REDACTED, render_sms

logger = logging.getLogger(__name__)

_DONE = {OtpStatus.SENT.value, OtpStatus.VERIFIED.value}


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class SmsDeliveryWorker:
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        sms_client: TwilioSmsClient,
        *,
        otp_settings: OtpSettings | None = None,
        now: Callable[[], dt.datetime] = _utcnow,
    ) -> None:
        self._factory = session_factory
        self._sms = sms_client
        self._otp = otp_settings or OtpSettings()
        self._now = now

    def process(self, job: SmsJob) -> str | None:
        """Send one OTP SMS and record it; returns the provider message SID."""

        challenge_id = uuid.UUID(job["otp_challenge_id"])
        interaction_id = uuid.UUID(job["interaction_id"])
        try:
            return self._deliver(job, challenge_id, interaction_id)
        except Exception:
            logger.exception("SMS job for challenge %s failed", challenge_id)
            self._mark_failed(challenge_id, interaction_id)
            raise

    def _deliver(self, job: SmsJob, challenge_id: uuid.UUID, interaction_id: uuid.UUID) -> str | None:
        with session_scope(self._factory) as session:
            challenge = session.get(OtpChallenge, challenge_id)
            if challenge is None:
                # Not committed yet or rolled back; the queue retries.
                raise NotFoundError(f"OTP challenge {challenge_id} not found")
            if challenge.status in _DONE:
                logger.info("Challenge %s already delivered; skipping redelivery", challenge_id)
                return None

            code = job["otp"]
            body = render_sms(
                job.get("purpose", challenge.purpose),
                code,
                job.get("template_data"),
                ttl_minutes=max(1, self._otp.ttl_seconds // 60),
            )
            sent = self._sms.send_sms(job.get("phone") or challenge.phone, body)

            now = self._now()
            store = InteractionStore(session, now=self._now)
            message = store.create_message(
                interaction_id,
                channel=Channel.SMS,
                direction=Direction.OUTBOUND,
                provider_message_id=sent.sid,
                text=body.replace(code, REDACTED),
                provider_status=sent.status or "queued",
                sent_at=now,
            )
            challenge.status = OtpStatus.SENT.value
            store.update_interaction(interaction_id, status=InteractionStatus.IN_PROGRESS)
            store.create_event(
                interaction_id,
                type="sms.sent",
                provider=Provider.TWILIO,
                provider_event_id=sent.sid,
                idempotency_key=f"sms-job:{challenge_id}",
                payload={
                    "message_sid": sent.sid,
                    "status": sent.status,
                    "purpose": challenge.purpose,
                    "otp_challenge_id": str(challenge_id),
                },
            )
            AuditLogger(session).log(
                "sms.send",
                entity_type="Message",
                entity_id=message.id,
                metadata={
                    "otp_challenge_id": str(challenge_id),
                    "purpose": challenge.purpose,
                    "message_sid": sent.sid,
                    "phone": mask_phone(sent.to),
                },
            )
            logger.info("OTP SMS for challenge %s sent (sid=%s)", challenge_id, sent.sid)
            return sent.sid

    def _mark_failed(self, challenge_id: uuid.UUID, interaction_id: uuid.UUID) -> None:
        with session_scope(self._factory) as session:
            challenge = session.get(OtpChallenge, challenge_id)
            if challenge is None or challenge.status in _DONE:
                return
            challenge.status = OtpStatus.FAILED.value
            try:
                InteractionStore(session, now=self._now).update_interaction(
                    interaction_id, status=InteractionStatus.FAILED
                )
            except NotFoundError:
                logger.warning(
                    "Interaction %s missing while failing challenge %s", interaction_id, challenge_id
                )


__all__ = ["SmsDeliveryWorker"]
