"""Read-side service for the dashboard plus call-detail refresh."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from ..errors import NotFoundError, ValidationError
from ..models import Interaction
from ..models.enums import Channel, Direction, Outcome, Provider
from ..phone import mask_phone, normalize_phone
from ..providers.elevenlabs import ElevenLabsClient
from . import schemas
from .store import InteractionStore

logger = logging.getLogger(__name__)

#: Events embedded per interaction in list responses.
LIST_EVENT_LIMIT = 10


def _mask(out: schemas.InteractionOut) -> schemas.InteractionOut:
    updates = {
        "from_number": mask_phone(out.from_number),
        "to_number": mask_phone(out.to_number),
    }
    if out.provider_conversation_id and normalize_phone(out.provider_conversation_id).isdigit():
        updates["provider_conversation_id"] = mask_phone(out.provider_conversation_id)
    return out.model_copy(update=updates)


class InteractionQueryService:
    def __init__(
        self,
        session: Session,
        *,
        store: InteractionStore | None = None,
        voice_client: ElevenLabsClient | None = None,
        mask_pii: bool = False,
    ) -> None:
        self._session = session
        self._store = store or InteractionStore(session)
        self._voice = voice_client
        self.mask_pii = mask_pii

    def _serialize(
        self, interaction: Interaction, *, event_limit: int | None = None
    ) -> schemas.InteractionOut:
        out = schemas.InteractionOut.model_validate(interaction)
        if event_limit is not None:
            out = out.model_copy(update={"events": out.events[:event_limit]})
        return _mask(out) if self.mask_pii else out

    def list_interactions(self, filters: schemas.InteractionFilters) -> schemas.InteractionList:
        """Return interactions matching ``filters``, most recently updated first."""

        conditions = []
        if filters.channel:
            conditions.append(Interaction.channel == filters.channel.upper())
        if filters.direction:
            conditions.append(Interaction.direction == filters.direction.upper())
        if filters.status:
            conditions.append(Interaction.status == filters.status.upper())
        if filters.provider:
            conditions.append(Interaction.provider == filters.provider.upper())
        if filters.from_number:
            conditions.append(Interaction.from_number.contains(filters.from_number))
        if filters.to_number:
            conditions.append(Interaction.to_number.contains(filters.to_number))
        if filters.agent:
            conditions.append(Interaction.assigned_agent.contains(filters.agent))
        if filters.date_from:
            conditions.append(Interaction.started_at >= filters.date_from)
        if filters.date_to:
            conditions.append(Interaction.started_at <= filters.date_to)

        total = self._session.scalar(
            select(func.count()).select_from(Interaction).where(*conditions)
        )
        rows = self._session.scalars(
            select(Interaction)
            .where(*conditions)
            .options(
                selectinload(Interaction.events),
                selectinload(Interaction.messages),
                selectinload(Interaction.call_detail),
            )
            .order_by(Interaction.updated_at.desc())
            .offset(filters.skip)
            .limit(filters.limit)
        ).all()
        return schemas.InteractionList(
            items=[self._serialize(row, event_limit=LIST_EVENT_LIMIT) for row in rows],
            total=total or 0,
            limit=filters.limit,
            skip=filters.skip,
        )

    def get_interaction(self, interaction_id: uuid.UUID) -> schemas.InteractionOut:
        interaction = self._session.scalars(
            select(Interaction)
            .where(Interaction.id == interaction_id)
            .options(
                selectinload(Interaction.events),
                selectinload(Interaction.messages),
                selectinload(Interaction.call_detail),
            )
        ).one_or_none()
        if interaction is None:
            raise NotFoundError(f"Interaction {interaction_id} not found")
        return self._serialize(interaction)

    def client_profile(self, phone: str) -> schemas.ClientProfile:
        """Aggregate every interaction that involves ``phone``."""

        normalized = normalize_phone(phone)
        if not normalized:
            raise ValidationError("phone is required")
        rows = self._session.scalars(
            select(Interaction)
            .where(
                or_(
                    Interaction.from_number.contains(normalized),
                    Interaction.to_number.contains(normalized),
                    Interaction.provider_conversation_id.contains(normalized),
                )
            )
            .options(
                selectinload(Interaction.messages),
                selectinload(Interaction.call_detail),
            )
            .order_by(Interaction.started_at.desc())
        ).all()

        profile = schemas.ClientProfile(phone=phone, normalized_phone=normalized)
        if not rows:
            return profile

        stats = profile.stats
        stats.total_interactions = len(rows)
        for row in rows:
            if row.channel == Channel.CALL.value and row.direction == Direction.INBOUND.value:
                stats.inbound_calls += 1
            if row.channel == Channel.WHATSAPP.value:
                stats.whatsapp_interactions += 1
                for message in row.messages:
                    if message.direction == Direction.INBOUND.value:
                        stats.whatsapp_messages.inbound += 1
                    else:
                        stats.whatsapp_messages.outbound += 1
                    stats.whatsapp_messages.total += 1
            if row.outcome == Outcome.RESOLVED.value:
                stats.resolved_interactions += 1
                if row.channel == Channel.SMS.value and "OTP" in (row.intent or ""):
                    stats.sms_otp_confirmed += 1
        stats.resolved_percentage = round(
            stats.resolved_interactions * 100 / stats.total_interactions
        )

        latest = rows[0]
        profile.interactions = [self._serialize(row) for row in rows]
        profile.last_interaction = schemas.LastInteraction(
            id=latest.id,
            channel=latest.channel,
            started_at=latest.started_at,
            created_at=latest.created_at,
        )
        profile.customer_ref = latest.customer_ref
        return profile

    def refresh_call_details(self, interaction_id: uuid.UUID) -> schemas.InteractionOut:
        """Re-fetch a voice interaction from the vendor and merge it in.

        Vendor failures propagate: this is a primary call made on request.
        """

        interaction = self._store.get_interaction(interaction_id)
        if interaction.provider != Provider.ELEVENLABS.value or not interaction.provider_conversation_id:
            raise ValidationError("Interaction has no voice conversation to refresh")
        if self._voice is None:
            raise ValidationError("Voice provider client is not available")

        details = self._voice.fetch_call_details(interaction.provider_conversation_id)
        self._store.update_interaction(
            interaction.id,
            started_at=details.started_at,
            ended_at=details.ended_at,
            status=details.status,
            outcome=details.outcome,
        )
        self._store.upsert_call_detail(interaction.id, **details.call_detail_fields())
        logger.info("Refreshed call details for interaction %s", interaction.id)
        self._session.expire(interaction)
        return self.get_interaction(interaction.id)


__all__ = ["InteractionQueryService", "LIST_EVENT_LIMIT"]
