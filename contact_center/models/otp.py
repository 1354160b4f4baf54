"""OTP challenge model."""

from __future__ import annotations

import datetime as dt
import uuid
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from . import Base
from .interaction import _utcnow


class OtpChallenge(Base):
    """A single one-time-passcode verification attempt.

    Attributes:
        otp_hash: Argon2 hash of the code; the plaintext is never stored.
        correlation_id: Caller-supplied key used to verify the code.
        interaction_id: SMS outbound interaction created with the challenge.
    """

    __tablename__ = "otp_challenges"
    __table_args__ = (
        Index("ix_otp_challenges_correlation_id_unique", "correlation_id", unique=True),
        Index("ix_otp_challenges_phone_purpose_created", "phone", "purpose", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    phone: Mapped[str] = mapped_column(String(length=64), nullable=False)
    purpose: Mapped[str] = mapped_column(String(length=32), nullable=False)
    otp_hash: Mapped[str] = mapped_column(String(length=255), nullable=False)
    expires_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(length=16), nullable=False, default="PENDING")
    correlation_id: Mapped[str] = mapped_column(String(length=255), nullable=False)
    interaction_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("interactions.id"), nullable=False
    )
    verified_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )
