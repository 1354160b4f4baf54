"""OTP challenge manager."""

from __future__ import annotations

from .service import OtpCreated, OtpService, OtpVerified

__all__ = ["OtpCreated", "OtpService", "OtpVerified"]
