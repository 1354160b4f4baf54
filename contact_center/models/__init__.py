"""SQLAlchemy declarative base and contact-center models.

A single declarative ``Base`` is shared by every model module so the schema can
be created from ``Base.metadata`` in tests and mirrored by the migrations.
"""

from __future__ import annotations

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy declarative models."""


# Re-export models so callers can import them via ``from contact_center.models
# import Interaction`` instead of touching private modules.
from .audit import AuditLog
from .customer import Customer, CustomerNote, CustomerTag
from .enums import (
    ActorType,
    Channel,
    CustomerStatus,
    Direction,
    InteractionStatus,
    OtpPurpose,
    OtpStatus,
    Outcome,
    Provider,
)
from .interaction import CallDetail, Interaction, InteractionEvent, Message
from .otp import OtpChallenge


__all__ = [
    "ActorType",
    "AuditLog",
    "Base",
    "CallDetail",
    "Channel",
    "Customer",
    "CustomerNote",
    "CustomerStatus",
    "CustomerTag",
    "Direction",
    "Interaction",
    "InteractionEvent",
    "InteractionStatus",
    "Message",
    "OtpChallenge",
    "OtpPurpose",
    "OtpStatus",
    "Outcome",
    "Provider",
]
