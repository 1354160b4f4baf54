"""Vendor API clients."""

from __future__ import annotations

from .base import SoftResult
from .builderbot import BuilderBotClient
from .elevenlabs import ElevenLabsClient
from .twilio_sms import SentSms, TwilioSmsClient

__all__ = [
    "BuilderBotClient",
    "ElevenLabsClient",
    "SentSms",
    "SoftResult",
    "TwilioSmsClient",
]
