"""Webhook dispatcher: authenticate, normalize, deduplicate, persist, audit.

Each handler runs the same pipeline for one provider. The only failure that
is surfaced to the vendor is :class:`~contact_center.errors.AuthenticationError`;
best-effort enrichment returns a :class:`SoftResult` and is logged when it fails.
"""

from __future__ import annotations

import dataclasses
import datetime as dt
import hmac
import json
import logging
import uuid
from collections.abc import Callable, Mapping
from typing import Any

from ..audit import SYSTEM, AuditLogger, RequestOrigin
from ..config import Settings
from ..customers.service import CustomerService
from ..errors import AuthenticationError
from ..interactions.store import InteractionKey, InteractionStore
from ..models import Interaction
from ..models.enums import Channel, Direction, InteractionStatus, Provider
from ..normalizers import (
    UNKNOWN,
    BuilderBotNormalizer,
    ElevenLabsNormalizer,
    NormalizedCall,
    TwilioStatusNormalizer,
)
from ..normalizers.base import as_text, first_present
from ..phone import mask_phone, normalize_phone
from ..providers.base import SoftResult
from ..providers.elevenlabs import ElevenLabsClient

logger = logging.getLogger(__name__)

ATTACHMENT_PLACEHOLDER = "[attachment]"
SYSTEM_PARTY = "system"

_CALLER_KEYS = ("caller_id", "from", "phone", "phone_number")


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _jsonable(value: Any) -> Any:
    return json.loads(json.dumps(value, default=str))


@dataclasses.dataclass
class WebhookResult:
    """What a handler tells the vendor; serialised by :meth:`as_response`."""

    success: bool = True
    interaction_id: uuid.UUID | None = None
    message_id: uuid.UUID | None = None
    duplicate: bool = False
    ignored: bool = False
    detail: str | None = None

    def as_response(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": self.success}
        if self.interaction_id is not None:
            body["interactionId"] = str(self.interaction_id)
        if self.message_id is not None:
            body["messageId"] = str(self.message_id)
        if self.duplicate:
            body["duplicate"] = True
        if self.ignored:
            body["ignored"] = True
        if self.detail:
            body["message"] = self.detail
        return body


def check_token(expected: str | None, supplied: str | None, *, provider: str) -> None:
    """Compare a webhook token with the configured secret in constant time."""

    if not expected:
        raise AuthenticationError(f"{provider} webhook secret is not configured")
    if not supplied or not hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8")):
        raise AuthenticationError("Invalid webhook token")


class WebhookDispatcher:
    def __init__(
        self,
        settings: Settings,
        *,
        store: InteractionStore,
        audit: AuditLogger,
        customers: CustomerService | None = None,
        voice_client: ElevenLabsClient | None = None,
        now: Callable[[], dt.datetime] = _utcnow,
    ) -> None:
        self.settings = settings
        self.store = store
        self.audit = audit
        self.customers = customers or CustomerService(store.session)
        self.voice_client = voice_client
        self._now = now
        self.voice = ElevenLabsNormalizer()
        self.whatsapp = BuilderBotNormalizer()
        self.sms_status = TwilioStatusNormalizer()

    def _replay(self, key: str) -> WebhookResult | None:
        existing = self.store.find_event_by_idempotency_key(key)
        if existing is None:
            return None
        logger.info("Duplicate webhook delivery %s ignored", key)
        return WebhookResult(interaction_id=existing.interaction_id, duplicate=True)

    # -- voice -------------------------------------------------------------------

    def _enrich_call(self, call: NormalizedCall) -> SoftResult[NormalizedCall] | None:
        """Fetch full call details when the webhook is missing some of them."""

        if not call.conversation_id or self.voice_client is None:
            return None
        if not self.settings.elevenlabs.api_key:
            return None
        if call.transcript_text and call.summary and call.recording_url:
            return None
        return SoftResult.capture(self.voice_client.fetch_call_details, call.conversation_id)

    def handle_elevenlabs(
        self,
        payload: Mapping[str, Any],
        token: str | None,
        origin: RequestOrigin = SYSTEM,
    ) -> WebhookResult:
        check_token(self.settings.elevenlabs.webhook_token, token, provider="elevenlabs")
        call = self.voice.normalize(payload)
        key = self.voice.idempotency_key(payload)
        replay = self._replay(key)
        if replay is not None:
            return replay

        interaction = self.store.upsert_interaction(
            InteractionKey(
                provider=Provider.ELEVENLABS.value,
                channel=Channel.CALL.value,
                direction=call.direction,
                from_number=call.from_number,
                to_number=call.to_number,
                provider_conversation_id=call.thread_id,
            ),
            **call.interaction_fields(),
        )
        _, created = self.store.record_event(
            interaction.id,
            type=call.event_type,
            provider=Provider.ELEVENLABS.value,
            provider_event_id=call.event_id,
            idempotency_key=key,
            payload={"raw": _jsonable(payload), "normalized": _jsonable(dataclasses.asdict(call))},
        )
        if not created:
            return WebhookResult(interaction_id=interaction.id, duplicate=True)
        self.store.upsert_call_detail(interaction.id, **call.call_detail_fields())

        enrichment = self._enrich_call(call)
        enrichment_state = "skipped"
        if enrichment is not None and enrichment.ok and enrichment.value is not None:
            self._merge_details(interaction, call, enrichment.value)
            enrichment_state = "ok"
        elif enrichment is not None:
            # Best effort: the vendor must not retry because of this.
            logger.warning(
                "Call detail enrichment failed for conversation %s: %s",
                call.conversation_id,
                enrichment.error,
            )
            enrichment_state = "failed"

        self.audit.log(
            "webhook.elevenlabs",
            entity_type="Interaction",
            entity_id=interaction.id,
            metadata={
                "event_id": call.event_id,
                "event_type": call.event_type,
                "conversation_id": call.conversation_id,
                "idempotency_key": key,
                "enrichment": enrichment_state,
            },
            origin=origin,
        )
        logger.info("Processed call webhook for interaction %s", interaction.id)
        return WebhookResult(interaction_id=interaction.id)

    def _merge_details(
        self, interaction: Interaction, call: NormalizedCall, details: NormalizedCall
    ) -> None:
        supplied = call.interaction_fields()
        missing = {
            name: value
            for name, value in details.interaction_fields().items()
            if supplied.get(name) is None
        }
        if any(value is not None for value in missing.values()):
            self.store.update_interaction(interaction.id, **missing)
        self.store.upsert_call_detail(interaction.id, **details.call_detail_fields())

    def handle_call_init(self, payload: Mapping[str, Any], token: str | None) -> dict[str, Any]:
        """Resolve dynamic variables for a call that is about to start."""

        check_token(self.settings.elevenlabs.webhook_token, token, provider="elevenlabs")
        caller = as_text(first_present([payload], _CALLER_KEYS))
        customer = self.customers.find_by_phone(caller)
        variables: dict[str, Any] = {
            "caller_id": caller or "",
            "customer_name": customer.name if customer else "",
            "customer_ref": str(customer.id) if customer else "",
            "customer_status": customer.status if customer else "UNKNOWN",
        }
        logger.info(
            "Call init for %s resolved customer=%s",
            mask_phone(caller),
            bool(customer),
        )
        return {"type": "conversation_initiation_client_data", "dynamic_variables": variables}

    # -- whatsapp ----------------------------------------------------------------

    def handle_builderbot(
        self,
        payload: Mapping[str, Any],
        token: str | None,
        origin: RequestOrigin = SYSTEM,
    ) -> WebhookResult:
        expected = self.settings.builderbot.webhook_token
        if expected:
            check_token(expected, token, provider="builderbot")

        message = self.whatsapp.normalize(payload)
        if not message.is_incoming:
            return WebhookResult(ignored=True, detail=f"Event {message.event_name} ignored")
        if message.is_empty or message.from_number == UNKNOWN:
            return WebhookResult(ignored=True, detail="Empty message ignored")

        key = self.whatsapp.idempotency_key(payload)
        replay = self._replay(key)
        if replay is not None:
            return replay

        phone = normalize_phone(message.from_number)
        interaction = self.store.upsert_interaction(
            InteractionKey(
                provider=Provider.BUILDERBOT.value,
                channel=Channel.WHATSAPP.value,
                direction=Direction.INBOUND.value,
                from_number=phone,
                to_number=SYSTEM_PARTY,
                provider_conversation_id=phone,
            ),
            status=InteractionStatus.IN_PROGRESS,
            customer_ref=message.customer_name,
        )
        _, created = self.store.record_event(
            interaction.id,
            type="message.incoming",
            provider=Provider.BUILDERBOT.value,
            provider_event_id=message.message_id,
            idempotency_key=key,
            payload={"raw": _jsonable(payload), "normalized": _jsonable(dataclasses.asdict(message))},
        )
        if not created:
            return WebhookResult(interaction_id=interaction.id, duplicate=True)

        stored = self.store.create_message(
            interaction.id,
            channel=Channel.WHATSAPP,
            direction=Direction.INBOUND,
            provider_message_id=message.message_id,
            text=message.text or ATTACHMENT_PLACEHOLDER,
            media_url=message.media_url,
            provider_status="received",
            sent_at=message.timestamp,
        )
        self.audit.log(
            "webhook.builderbot",
            entity_type="Message",
            entity_id=stored.id,
            metadata={
                "interaction_id": str(interaction.id),
                "idempotency_key": key,
                "has_media": bool(message.media_url),
            },
            origin=origin,
        )
        logger.info(
            "Stored WhatsApp message from %s in interaction %s",
            mask_phone(phone),
            interaction.id,
        )
        return WebhookResult(interaction_id=interaction.id, message_id=stored.id)

    # -- sms status --------------------------------------------------------------

    def handle_twilio_status(
        self,
        payload: Mapping[str, Any],
        token: str | None,
        origin: RequestOrigin = SYSTEM,
    ) -> WebhookResult:
        if token is not None:
            check_token(self.settings.twilio.webhook_token, token, provider="twilio")

        status = self.sms_status.normalize(payload)
        key = self.sms_status.idempotency_key(payload)
        replay = self._replay(key)
        if replay is not None:
            return replay

        message = (
            self.store.find_message_by_provider_id(status.message_sid)
            if status.message_sid
            else None
        )
        metadata = {
            "message_sid": status.message_sid,
            "status": status.status,
            "error_code": status.error_code,
            "error_message": status.error_message,
        }
        if message is None:
            logger.warning("Status %s for unknown SMS %s", status.status, status.message_sid)
            self.audit.log(
                "webhook.twilio.status",
                entity_type="Message",
                entity_id="unknown",
                metadata=metadata,
                origin=origin,
            )
            return WebhookResult(detail="Message not found")

        _, created = self.store.record_event(
            message.interaction_id,
            type="sms.status",
            provider=Provider.TWILIO.value,
            provider_event_id=status.message_sid,
            idempotency_key=key,
            payload={"raw": _jsonable(payload), "normalized": _jsonable(dataclasses.asdict(status))},
        )
        if not created:
            return WebhookResult(interaction_id=message.interaction_id, duplicate=True)

        now = self._now()
        message.provider_status = status.status
        if status.status == "delivered":
            message.delivered_at = now
        elif status.status == "read":
            message.read_at = now

        if status.status == "delivered":
            self.store.update_interaction(
                message.interaction_id, status=InteractionStatus.COMPLETED, ended_at=now
            )
        elif status.status in {"failed", "undelivered"}:
            self.store.update_interaction(
                message.interaction_id, status=InteractionStatus.FAILED, ended_at=now
            )

        self.audit.log(
            "webhook.twilio.status",
            entity_type="Message",
            entity_id=message.id,
            metadata=metadata,
            origin=origin,
        )
        return WebhookResult(interaction_id=message.interaction_id, message_id=message.id)


__all__ = ["ATTACHMENT_PLACEHOLDER", "WebhookDispatcher", "WebhookResult", "check_token"]
