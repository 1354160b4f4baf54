"""WhatsApp bot (BuilderBot) message payload normalizer.

Reads the event envelope ``{"eventName", "data": {...}}`` posted by the
bot runtime; keys are also looked up on the envelope itself for flat bodies.
"""

from __future__ import annotations

import dataclasses
import datetime as dt
from collections.abc import Mapping
from typing import Any

from .base import UNKNOWN, PayloadNormalizer, as_text, first_present, parse_timestamp, payload_hash

INCOMING_EVENT = "message.incoming"

FIELD_KEYS: dict[str, tuple[str, ...]] = {
    "event_name": ("eventName", "event_name", "event"),
    "message_id": ("message_id", "id", "messageId", "key.id"),
    "thread_id": ("thread_id", "threadId", "conversation.id"),
    "conversation_id": ("conversation_id", "conversationId", "chat.id"),
    "from_number": ("from", "remoteJid", "key.remoteJid", "phone", "phone_number", "wa_id"),
    "to_number": ("to", "destination", "recipient"),
    "text": ("body", "text", "message.text", "content"),
    "media_url": (
        "urlTempFile",
        "media_url",
        "mediaUrl",
        "media.url",
        "attachment.0.url",
        "attachment.url",
    ),
    "timestamp": ("timestamp", "created_at", "date"),
    "customer_name": ("name", "pushName", "profile.name"),
}


@dataclasses.dataclass
class NormalizedWhatsAppMessage:
    event_name: str | None
    message_id: str | None
    thread_id: str | None
    conversation_id: str | None
    from_number: str
    to_number: str
    text: str | None
    media_url: str | None
    timestamp: dt.datetime
    customer_name: str | None

    @property
    def is_incoming(self) -> bool:
        return self.event_name == INCOMING_EVENT

    @property
    def is_empty(self) -> bool:
        return not self.text and not self.media_url


def _clean_jid(value: str | None) -> str | None:
    # remoteJid values look like "5491112345678@s.whatsapp.net".
    if value and "@" in value:
        return value.split("@", 1)[0]
    return value


class BuilderBotNormalizer(PayloadNormalizer):
    provider_name = "builderbot"

    def _sources(self, payload: Mapping[str, Any]) -> list[Any]:
        data = payload.get("data") if isinstance(payload, Mapping) else None
        if isinstance(data, Mapping):
            return [data, payload]
        return [payload]

    def normalize(self, payload: Mapping[str, Any]) -> NormalizedWhatsAppMessage:
        sources = self._sources(payload)

        def pick(field: str) -> Any:
            return first_present(sources, FIELD_KEYS[field])

        # A message timestamp describes the delivery itself, so "now" is the
        # right default.
        timestamp = parse_timestamp(pick("timestamp")) or dt.datetime.now(dt.timezone.utc)
        return NormalizedWhatsAppMessage(
            event_name=as_text(pick("event_name")),
            message_id=as_text(pick("message_id")),
            thread_id=as_text(pick("thread_id")),
            conversation_id=as_text(pick("conversation_id")),
            from_number=_clean_jid(as_text(pick("from_number"))) or UNKNOWN,
            to_number=as_text(pick("to_number")) or UNKNOWN,
            text=as_text(pick("text")),
            media_url=as_text(pick("media_url")),
            timestamp=timestamp,
            customer_name=as_text(pick("customer_name")),
        )

    def idempotency_key(self, payload: Mapping[str, Any]) -> str:
        message_id = as_text(first_present(self._sources(payload), FIELD_KEYS["message_id"]))
        if message_id:
            return f"{self.provider_name}:{message_id}"
        return f"{self.provider_name}:{payload_hash(payload)}"


__all__ = ["BuilderBotNormalizer", "INCOMING_EVENT", "NormalizedWhatsAppMessage"]
