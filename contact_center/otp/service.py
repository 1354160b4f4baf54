"""OTP challenge manager.

``create`` rate-limits per (phone, purpose), hashes a fresh code, links it to a
new SMS interaction and hands the plaintext to the delivery queue. ``verify``
walks the challenge state machine; every call writes exactly one audit entry,
and rejections keep their state changes (attempt counter, EXPIRED/LOCKED).
"""

from __future__ import annotations

import dataclasses
import datetime as dt
import logging
import uuid
from collections.abc import Callable
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..audit import SYSTEM, AuditLogger, RequestOrigin
from ..config import OtpSettings, TwilioSettings
from ..errors import ConflictError, OtpVerificationError, RateLimitError, ValidationError
from ..interactions.store import InteractionKey, InteractionStore
from ..models import OtpChallenge
from ..models.enums import (
    Channel,
    Direction,
    InteractionStatus,
    OtpPurpose,
    OtpStatus,
    Outcome,
    Provider,
)
from ..phone import mask_phone, normalize_phone, to_e164
from ..worker.queue import JobQueue
from .hashing import generate_code, hash_code, verify_code

logger = logging.getLogger(__name__)

SYSTEM_PARTY = "system"

INVALID_CODE = "Invalid verification code"
EXPIRED_CODE = "Verification code has expired"
LOCKED_CODE = "Too many failed attempts"


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _as_utc(value: dt.datetime) -> dt.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc)


@dataclasses.dataclass(frozen=True)
class OtpCreated:
    correlation_id: str
    interaction_id: uuid.UUID
    expires_at: dt.datetime


@dataclasses.dataclass(frozen=True)
class OtpVerified:
    correlation_id: str
    interaction_id: uuid.UUID
    verified_at: dt.datetime


class OtpService:
    def __init__(
        self,
        session: Session,
        settings: OtpSettings,
        *,
        queue: JobQueue,
        store: InteractionStore | None = None,
        audit: AuditLogger | None = None,
        sms_settings: TwilioSettings | None = None,
        now: Callable[[], dt.datetime] = _utcnow,
    ) -> None:
        self._session = session
        self.settings = settings
        self._queue = queue
        self._store = store or InteractionStore(session, now=now)
        self._audit = audit or AuditLogger(session)
        self._country_code = (sms_settings or TwilioSettings()).default_country_code
        self._now = now

    def _recent_count(self, phone: str, purpose: str, since: dt.datetime) -> int:
        return self._session.scalar(
            select(func.count())
            .select_from(OtpChallenge)
            .where(
                OtpChallenge.phone == phone,
                OtpChallenge.purpose == purpose,
                OtpChallenge.created_at >= since,
            )
        ) or 0

    def create(
        self,
        phone: str,
        purpose: OtpPurpose | str,
        correlation_id: str,
        *,
        template_data: dict[str, Any] | None = None,
        origin: RequestOrigin = SYSTEM,
    ) -> OtpCreated:
        """Create a challenge and queue its SMS; never waits on delivery."""

        if not normalize_phone(phone):
            raise ValidationError("phone is required")
        if not correlation_id:
            raise ValidationError("correlation_id is required")
        try:
            purpose = OtpPurpose(purpose)
        except ValueError as exc:
            raise ValidationError(f"Unknown OTP purpose: {purpose}") from exc

        destination = to_e164(phone, self._country_code)
        now = self._now()
        window_start = now - dt.timedelta(seconds=self.settings.rate_limit_window_seconds)
        if self._recent_count(destination, purpose.value, window_start) >= self.settings.rate_limit_max:
            logger.info("OTP rate limit hit for %s (%s)", mask_phone(destination), purpose.value)
            raise RateLimitError("Too many OTP requests. Try again later.")

        exists = self._session.scalar(
            select(OtpChallenge.id).where(OtpChallenge.correlation_id == correlation_id)
        )
        if exists is not None:
            raise ConflictError("correlation_id already used")

        code = generate_code()
        interaction = self._store.upsert_interaction(
            InteractionKey(
                provider=Provider.TWILIO.value,
                channel=Channel.SMS.value,
                direction=Direction.OUTBOUND.value,
                from_number=SYSTEM_PARTY,
                to_number=destination,
                provider_conversation_id=f"otp:{correlation_id}",
            ),
            status=InteractionStatus.NEW,
            intent=f"OTP_{purpose.value}",
        )
        challenge = OtpChallenge(
            phone=destination,
            purpose=purpose.value,
            otp_hash=hash_code(code),
            expires_at=now + dt.timedelta(seconds=self.settings.ttl_seconds),
            max_attempts=self.settings.max_attempts,
            attempts=0,
            status=OtpStatus.PENDING.value,
            correlation_id=correlation_id,
            interaction_id=interaction.id,
            created_at=now,
        )
        self._session.add(challenge)
        self._session.flush()

        self._audit.log(
            "otp.create",
            entity_type="OtpChallenge",
            entity_id=challenge.id,
            metadata={
                "correlation_id": correlation_id,
                "purpose": purpose.value,
                "phone": mask_phone(destination),
                "interaction_id": str(interaction.id),
            },
            origin=origin,
        )
        # The worker retries until this transaction is visible.
        self._queue.enqueue(
            {
                "otp_challenge_id": str(challenge.id),
                "interaction_id": str(interaction.id),
                "phone": destination,
                "purpose": purpose.value,
                "otp": code,
                "template_data": template_data or {},
            }
        )
        logger.info("OTP challenge %s created for %s", challenge.id, mask_phone(destination))
        return OtpCreated(
            correlation_id=correlation_id,
            interaction_id=interaction.id,
            expires_at=challenge.expires_at,
        )

    def _reject(
        self,
        challenge: OtpChallenge | None,
        correlation_id: str,
        reason: str,
        message: str,
        origin: RequestOrigin,
        **extra: Any,
    ) -> OtpVerificationError:
        self._audit.log(
            "otp.verify",
            entity_type="OtpChallenge",
            entity_id=challenge.id if challenge is not None else correlation_id,
            metadata={"success": False, "reason": reason, "correlation_id": correlation_id, **extra},
            origin=origin,
        )
        logger.info("OTP verification rejected for %s: %s", correlation_id, reason)
        return OtpVerificationError(message, reason=reason)

    def verify(
        self, correlation_id: str, code: str, *, origin: RequestOrigin = SYSTEM
    ) -> OtpVerified:
        """Check ``code`` for the challenge identified by ``correlation_id``."""

        challenge = self._session.scalars(
            select(OtpChallenge).where(OtpChallenge.correlation_id == correlation_id)
        ).one_or_none()
        if challenge is None:
            raise self._reject(None, correlation_id, "not_found", INVALID_CODE, origin)
        if challenge.status == OtpStatus.VERIFIED.value:
            raise self._reject(challenge, correlation_id, "already_verified", INVALID_CODE, origin)
        if challenge.status == OtpStatus.LOCKED.value:
            raise self._reject(challenge, correlation_id, "locked", LOCKED_CODE, origin)

        now = self._now()
        if now > _as_utc(challenge.expires_at):
            challenge.status = OtpStatus.EXPIRED.value
            self._session.flush()
            raise self._reject(challenge, correlation_id, "expired", EXPIRED_CODE, origin)
        if challenge.attempts >= challenge.max_attempts:
            challenge.status = OtpStatus.LOCKED.value
            self._session.flush()
            raise self._reject(challenge, correlation_id, "locked", LOCKED_CODE, origin)

        challenge.attempts += 1
        if not verify_code(code, challenge.otp_hash):
            locked = challenge.attempts >= challenge.max_attempts
            if locked:
                challenge.status = OtpStatus.LOCKED.value
            self._session.flush()
            raise self._reject(
                challenge,
                correlation_id,
                "invalid_otp",
                INVALID_CODE,
                origin,
                attempts=challenge.attempts,
                locked=locked,
            )

        challenge.status = OtpStatus.VERIFIED.value
        challenge.verified_at = now
        self._store.update_interaction(
            challenge.interaction_id,
            status=InteractionStatus.COMPLETED,
            outcome=Outcome.RESOLVED,
            ended_at=now,
        )
        self._audit.log(
            "otp.verify",
            entity_type="OtpChallenge",
            entity_id=challenge.id,
            metadata={"success": True, "correlation_id": correlation_id, "attempts": challenge.attempts},
            origin=origin,
        )
        logger.info("OTP challenge %s verified", challenge.id)
        return OtpVerified(
            correlation_id=correlation_id,
            interaction_id=challenge.interaction_id,
            verified_at=now,
        )


__all__ = ["OtpCreated", "OtpService", "OtpVerified"]
