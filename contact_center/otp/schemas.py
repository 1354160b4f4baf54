"""Pydantic schemas for the OTP API."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from ..models.enums import OtpPurpose


class OtpCreateRequest(BaseModel):
    phone: str = Field(min_length=3, max_length=64)
    purpose: OtpPurpose
    correlation_id: str = Field(min_length=1, max_length=255)
    template_data: dict[str, Any] = Field(default_factory=dict)


class SmsOtpRequest(BaseModel):
    phone: str = Field(min_length=3, max_length=64)
    purpose: OtpPurpose = OtpPurpose.IDENTITY_VERIFICATION


class OtpCreateResponse(BaseModel):
    correlation_id: str
    interaction_id: UUID
    expires_at: datetime
    message: str = "OTP created and queued for delivery"


class OtpVerifyRequest(BaseModel):
    correlation_id: str = Field(min_length=1, max_length=255)
    otp: str = Field(min_length=1, max_length=16)


class OtpVerifyResponse(BaseModel):
    success: bool = True
    correlation_id: str
    interaction_id: UUID
    verified_at: datetime
