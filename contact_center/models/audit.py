"""Append-only audit trail."""

from __future__ import annotations

import datetime as dt
import uuid
from typing import Any, Optional

from sqlalchemy import DateTime, Index, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from . import Base
from .interaction import JSONType, _utcnow


class AuditLog(Base):
    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_logs_entity", "entity_type", "entity_id"),
        Index("ix_audit_logs_ts", "ts"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    ts: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    actor_type: Mapped[str] = mapped_column(String(length=16), nullable=False)
    actor_id: Mapped[Optional[str]] = mapped_column(String(length=255))
    action: Mapped[str] = mapped_column(String(length=64), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(length=64), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(length=255), nullable=False)
    ip: Mapped[Optional[str]] = mapped_column(String(length=64))
    user_agent: Mapped[Optional[str]] = mapped_column(String(length=512))
    # ``metadata`` is reserved on declarative classes.
    details: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSONType, nullable=False, default=dict
    )
