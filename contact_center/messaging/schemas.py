"""Pydantic schemas for the outbound messaging API."""

from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, Field


class SmsSendRequest(BaseModel):
    phone: str = Field(min_length=3, max_length=64)
    message: str = Field(min_length=1, max_length=1600)


class LinkSmsRequest(BaseModel):
    phone: str = Field(min_length=3, max_length=64)


class WhatsAppSendRequest(BaseModel):
    phone: str = Field(min_length=3, max_length=64)
    message: str = Field(min_length=1, max_length=4096)
    media_url: str | None = None


class SendResponse(BaseModel):
    success: bool = True
    interaction_id: UUID
    message_id: UUID
    provider_message_id: str
    status: str
