"""Enumerations stored as plain strings in the database.

Columns are ``String`` rather than native enums so that vendor states the
normalizers pass through unchanged can still be persisted.
"""

from __future__ import annotations

import enum


class Channel(str, enum.Enum):
    CALL = "CALL"
    WHATSAPP = "WHATSAPP"
    SMS = "SMS"


class Direction(str, enum.Enum):
    INBOUND = "INBOUND"
    OUTBOUND = "OUTBOUND"


class Provider(str, enum.Enum):
    ELEVENLABS = "ELEVENLABS"
    BUILDERBOT = "BUILDERBOT"
    TWILIO = "TWILIO"


class InteractionStatus(str, enum.Enum):
    NEW = "NEW"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    ABANDONED = "ABANDONED"
    FAILED = "FAILED"


class Outcome(str, enum.Enum):
    RESOLVED = "RESOLVED"
    ESCALATED = "ESCALATED"
    TICKETED = "TICKETED"
    TRANSFERRED = "TRANSFERRED"
    UNKNOWN = "UNKNOWN"


class OtpPurpose(str, enum.Enum):
    PASSWORD_RESET = "PASSWORD_RESET"
    TX_CONFIRMATION = "TX_CONFIRMATION"
    IDENTITY_VERIFICATION = "IDENTITY_VERIFICATION"
    LOGIN_2FA = "LOGIN_2FA"


class OtpStatus(str, enum.Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    VERIFIED = "VERIFIED"
    EXPIRED = "EXPIRED"
    LOCKED = "LOCKED"
    FAILED = "FAILED"


class ActorType(str, enum.Enum):
    SYSTEM = "SYSTEM"
    USER = "USER"


class CustomerStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    BLOCKED = "BLOCKED"


def enum_value(value: object) -> object:
    """Return the raw value of ``value`` if it is an enum member."""

    if isinstance(value, enum.Enum):
        return value.value
    return value
