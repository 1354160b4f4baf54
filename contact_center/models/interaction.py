"""Interaction aggregate: the interaction row plus events, messages and call detail.

The two unique indexes on ``interactions`` enforce the reconciliation key: the
vendor conversation id when present, otherwise the (provider, from, to,
channel) tuple. They mirror ``contact_center/migrations/001_create_contact_center_tables.py``.
"""

from __future__ import annotations

import datetime as dt
import uuid
from typing import Any, List, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from . import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")

_NO_CONVERSATION_ID = text("provider_conversation_id IS NULL")


def _utcnow() -> dt.datetime:
    """Return the current UTC timestamp with timezone awareness."""

    return dt.datetime.now(dt.timezone.utc)


class Interaction(Base):
    """One communication episode: a call, a WhatsApp thread or an SMS send."""

    __tablename__ = "interactions"
    __table_args__ = (
        Index(
            "ix_interactions_provider_conversation_unique",
            "provider",
            "provider_conversation_id",
            unique=True,
        ),
        Index(
            "ix_interactions_provider_parties_unique",
            "provider",
            "from_number",
            "to_number",
            "channel",
            unique=True,
            postgresql_where=_NO_CONVERSATION_ID,
            sqlite_where=_NO_CONVERSATION_ID,
        ),
        Index("ix_interactions_updated_at", "updated_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    channel: Mapped[str] = mapped_column(String(length=16), nullable=False)
    direction: Mapped[str] = mapped_column(String(length=16), nullable=False)
    provider: Mapped[str] = mapped_column(String(length=32), nullable=False)
    provider_conversation_id: Mapped[Optional[str]] = mapped_column(
        String(length=255), nullable=True
    )
    from_number: Mapped[str] = mapped_column(String(length=64), nullable=False)
    to_number: Mapped[str] = mapped_column(String(length=64), nullable=False)
    status: Mapped[str] = mapped_column(
        String(length=32), nullable=False, default="NEW", server_default=text("'NEW'")
    )
    started_at: Mapped[Optional[dt.datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    ended_at: Mapped[Optional[dt.datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    assigned_agent: Mapped[Optional[str]] = mapped_column(String(length=255))
    intent: Mapped[Optional[str]] = mapped_column(String(length=255))
    outcome: Mapped[Optional[str]] = mapped_column(String(length=32))
    customer_ref: Mapped[Optional[str]] = mapped_column(String(length=255))
    queue: Mapped[Optional[str]] = mapped_column(String(length=255))
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    events: Mapped[List["InteractionEvent"]] = relationship(
        back_populates="interaction",
        order_by="InteractionEvent.timestamp.desc()",
        passive_deletes=True,
    )
    messages: Mapped[List["Message"]] = relationship(
        back_populates="interaction",
        order_by="Message.created_at",
        passive_deletes=True,
    )
    call_detail: Mapped[Optional["CallDetail"]] = relationship(
        back_populates="interaction", uselist=False, passive_deletes=True
    )


class InteractionEvent(Base):
    """Append-only record of one accepted webhook delivery or queue completion."""

    __tablename__ = "interaction_events"
    __table_args__ = (
        Index("ix_interaction_events_idempotency_key_unique", "idempotency_key", unique=True),
        Index("ix_interaction_events_interaction_id", "interaction_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    interaction_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("interactions.id", ondelete="CASCADE"),
        nullable=False,
    )
    type: Mapped[str] = mapped_column(String(length=64), nullable=False)
    provider: Mapped[str] = mapped_column(String(length=32), nullable=False)
    provider_event_id: Mapped[Optional[str]] = mapped_column(String(length=255))
    idempotency_key: Mapped[Optional[str]] = mapped_column(String(length=255))
    payload: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    timestamp: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    interaction: Mapped[Interaction] = relationship(back_populates="events")


class Message(Base):
    """Inbound or outbound text/media unit inside an interaction."""

    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_interaction_id", "interaction_id"),
        Index("ix_messages_provider_message_id", "provider_message_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    interaction_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("interactions.id", ondelete="CASCADE"),
        nullable=False,
    )
    channel: Mapped[str] = mapped_column(String(length=16), nullable=False)
    direction: Mapped[str] = mapped_column(String(length=16), nullable=False)
    provider_message_id: Mapped[Optional[str]] = mapped_column(String(length=255))
    text: Mapped[Optional[str]] = mapped_column(Text)
    media_url: Mapped[Optional[str]] = mapped_column(Text)
    provider_status: Mapped[Optional[str]] = mapped_column(String(length=64))
    sent_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime(timezone=True))
    delivered_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime(timezone=True))
    read_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    interaction: Mapped[Interaction] = relationship(back_populates="messages")


class CallDetail(Base):
    """Transcript and recording metadata for a voice interaction."""

    __tablename__ = "call_details"
    __table_args__ = (
        Index("ix_call_details_interaction_id_unique", "interaction_id", unique=True),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    interaction_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("interactions.id", ondelete="CASCADE"),
        nullable=False,
    )
    vendor_call_id: Mapped[Optional[str]] = mapped_column(String(length=255))
    recording_url: Mapped[Optional[str]] = mapped_column(Text)
    transcript_text: Mapped[Optional[str]] = mapped_column(Text)
    transcript_id: Mapped[Optional[str]] = mapped_column(String(length=255))
    summary: Mapped[Optional[str]] = mapped_column(Text)
    duration_seconds: Mapped[Optional[int]] = mapped_column(Integer)
    hangup_reason: Mapped[Optional[str]] = mapped_column(String(length=255))
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    interaction: Mapped[Interaction] = relationship(back_populates="call_detail")
