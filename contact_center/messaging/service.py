"""Outbound SMS and WhatsApp sends initiated from the dashboard.

The vendor call comes first and its errors propagate; nothing is recorded for
a send the vendor rejected.
"""

from __future__ import annotations

import dataclasses
import logging
import uuid

from ..audit import SYSTEM, AuditLogger, RequestOrigin
from ..errors import ValidationError
from ..interactions.store import InteractionKey, InteractionStore
from ..models.enums import Channel, Direction, InteractionStatus, Provider
from ..phone import mask_phone, normalize_phone
from ..providers.builderbot import BuilderBotClient
from ..providers.twilio_sms import TwilioSmsClient
from .templates import render_link_sms

logger = logging.getLogger(__name__)

SYSTEM_PARTY = "system"


@dataclasses.dataclass(frozen=True)
class SendReceipt:
    interaction_id: uuid.UUID
    message_id: uuid.UUID
    provider_message_id: str
    status: str


class MessagingService:
    def __init__(
        self,
        store: InteractionStore,
        audit: AuditLogger,
        *,
        sms_client: TwilioSmsClient | None = None,
        whatsapp_client: BuilderBotClient | None = None,
        frontend_url: str = "http://localhost:3000",
    ) -> None:
        self.store = store
        self.audit = audit
        self._sms = sms_client
        self._whatsapp = whatsapp_client
        self._frontend_url = frontend_url

    @staticmethod
    def _require(phone: str, text: str) -> None:
        if not normalize_phone(phone):
            raise ValidationError("phone is required")
        if not text or not text.strip():
            raise ValidationError("message is required")

    def send_sms(
        self, phone: str, text: str, *, origin: RequestOrigin = SYSTEM, kind: str = "custom"
    ) -> SendReceipt:
        self._require(phone, text)
        if self._sms is None:
            raise ValidationError("SMS client is not available")
        sent = self._sms.send_sms(phone, text)

        interaction = self.store.upsert_interaction(
            InteractionKey(
                provider=Provider.TWILIO.value,
                channel=Channel.SMS.value,
                direction=Direction.OUTBOUND.value,
                from_number=SYSTEM_PARTY,
                to_number=sent.to,
            ),
            status=InteractionStatus.IN_PROGRESS,
        )
        status = sent.status or "queued"
        message = self.store.create_message(
            interaction.id,
            channel=Channel.SMS,
            direction=Direction.OUTBOUND,
            provider_message_id=sent.sid,
            text=text,
            provider_status=status,
            sent_at=self.store.now(),
        )
        self.audit.log(
            "sms.send",
            entity_type="Message",
            entity_id=message.id,
            metadata={"message_sid": sent.sid, "phone": mask_phone(sent.to), "type": kind},
            origin=origin,
        )
        return SendReceipt(interaction.id, message.id, sent.sid, status)

    def send_link_sms(self, phone: str, kind: str, *, origin: RequestOrigin = SYSTEM) -> SendReceipt:
        """Send the templated link message for ``kind``."""

        return self.send_sms(phone, render_link_sms(kind, self._frontend_url), origin=origin, kind=kind)

    def send_whatsapp(
        self,
        phone: str,
        text: str,
        *,
        media_url: str | None = None,
        origin: RequestOrigin = SYSTEM,
    ) -> SendReceipt:
        self._require(phone, text)
        if self._whatsapp is None:
            raise ValidationError("WhatsApp client is not available")
        number = normalize_phone(phone)
        provider_message_id = self._whatsapp.send_message(number, text, media_url)

        # Same conversation key as inbound messages, so replies share the thread.
        interaction = self.store.upsert_interaction(
            InteractionKey(
                provider=Provider.BUILDERBOT.value,
                channel=Channel.WHATSAPP.value,
                direction=Direction.OUTBOUND.value,
                from_number=SYSTEM_PARTY,
                to_number=number,
                provider_conversation_id=number,
            ),
            status=InteractionStatus.IN_PROGRESS,
        )
        message = self.store.create_message(
            interaction.id,
            channel=Channel.WHATSAPP,
            direction=Direction.OUTBOUND,
            provider_message_id=provider_message_id,
            text=text,
            media_url=media_url,
            provider_status="sent",
            sent_at=self.store.now(),
        )
        self.audit.log(
            "wa.send",
            entity_type="Message",
            entity_id=message.id,
            metadata={"provider_message_id": provider_message_id, "phone": mask_phone(number)},
            origin=origin,
        )
        logger.info("WhatsApp message sent to %s", mask_phone(number))
        return SendReceipt(interaction.id, message.id, provider_message_id, "sent")


__all__ = ["MessagingService", "SendReceipt"]
