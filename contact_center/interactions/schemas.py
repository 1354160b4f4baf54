"""Pydantic schemas for the interactions query API."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class _OrmModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class InteractionEventOut(_OrmModel):
    id: UUID
    type: str
    provider: str
    provider_event_id: str | None = None
    idempotency_key: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime


class MessageOut(_OrmModel):
    id: UUID
    channel: str
    direction: str
    provider_message_id: str | None = None
    text: str | None = None
    media_url: str | None = None
    provider_status: str | None = None
    sent_at: datetime | None = None
    delivered_at: datetime | None = None
    read_at: datetime | None = None
    created_at: datetime


class CallDetailOut(_OrmModel):
    vendor_call_id: str | None = None
    recording_url: str | None = None
    transcript_text: str | None = None
    transcript_id: str | None = None
    summary: str | None = None
    duration_seconds: int | None = None
    hangup_reason: str | None = None


class InteractionOut(_OrmModel):
    id: UUID
    channel: str
    direction: str
    provider: str
    provider_conversation_id: str | None = None
    from_number: str
    to_number: str
    status: str
    started_at: datetime | None = None
    ended_at: datetime | None = None
    assigned_agent: str | None = None
    intent: str | None = None
    outcome: str | None = None
    customer_ref: str | None = None
    queue: str | None = None
    created_at: datetime
    updated_at: datetime
    events: list[InteractionEventOut] = Field(default_factory=list)
    messages: list[MessageOut] = Field(default_factory=list)
    call_detail: CallDetailOut | None = None


class InteractionList(BaseModel):
    items: list[InteractionOut]
    total: int
    limit: int
    skip: int


class InteractionFilters(BaseModel):
    channel: str | None = None
    direction: str | None = None
    status: str | None = None
    provider: str | None = None
    from_number: str | None = None
    to_number: str | None = None
    agent: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    limit: int = Field(default=100, ge=1, le=500)
    skip: int = Field(default=0, ge=0)


class WhatsAppMessageStats(BaseModel):
    inbound: int = 0
    outbound: int = 0
    total: int = 0


class ClientStats(BaseModel):
    total_interactions: int = 0
    inbound_calls: int = 0
    whatsapp_interactions: int = 0
    whatsapp_messages: WhatsAppMessageStats = Field(default_factory=WhatsAppMessageStats)
    sms_otp_confirmed: int = 0
    resolved_interactions: int = 0
    resolved_percentage: int = 0


class LastInteraction(BaseModel):
    id: UUID
    channel: str
    started_at: datetime | None = None
    created_at: datetime


class ClientProfile(BaseModel):
    phone: str
    normalized_phone: str
    interactions: list[InteractionOut] = Field(default_factory=list)
    stats: ClientStats = Field(default_factory=ClientStats)
    last_interaction: LastInteraction | None = None
    customer_ref: str | None = None
