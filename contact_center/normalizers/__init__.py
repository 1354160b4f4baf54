"""Normalizer registry for provider webhook payloads."""

from __future__ import annotations

from .base import UNKNOWN, PayloadNormalizer
from .builderbot import BuilderBotNormalizer, NormalizedWhatsAppMessage
from .elevenlabs import ElevenLabsNormalizer, NormalizedCall
from .twilio_status import NormalizedSmsStatus, TwilioStatusNormalizer

_REGISTRY: dict[str, type[PayloadNormalizer]] = {}


def register_normalizer(normalizer: type[PayloadNormalizer]) -> None:
    """Register a normalizer class in the global registry."""
    _REGISTRY[normalizer.provider_name] = normalizer


def get_normalizer(name: str) -> PayloadNormalizer:
    """Return a normalizer instance for ``name`` or raise ``KeyError``."""
    normalized = name.lower()
    if normalized not in _REGISTRY:
        raise KeyError(f"Provider '{name}' is not configured")
    return _REGISTRY[normalized]()


# Pre-register built-in normalizers
register_normalizer(ElevenLabsNormalizer)
register_normalizer(BuilderBotNormalizer)
register_normalizer(TwilioStatusNormalizer)

__all__ = [
    "UNKNOWN",
    "BuilderBotNormalizer",
    "ElevenLabsNormalizer",
    "NormalizedCall",
    "NormalizedSmsStatus",
    "NormalizedWhatsAppMessage",
    "PayloadNormalizer",
    "TwilioStatusNormalizer",
    "get_normalizer",
    "register_normalizer",
]
