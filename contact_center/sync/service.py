"""Pull-based reconciliation against the voice provider's conversation list.

Scheduled and manual runs share :meth:`SyncService._sync_window` and write
through the same :class:`InteractionStore` upserts as the webhooks, so a
conversation converges to one row whichever path sees it first.

The in-progress guard is a process-local lock. It does not coordinate
multiple API instances; run the scheduler in a single instance.
"""

from __future__ import annotations

import dataclasses
import datetime as dt
import logging
import threading
import uuid
from collections.abc import Callable
from typing import Any

from sqlalchemy.orm import Session, sessionmaker

from ..config import ElevenLabsSettings, SyncSettings
from ..errors import ConfigurationError, ConflictError
from ..interactions.store import InteractionKey, InteractionStore
from ..models.enums import Channel, Provider
from ..models.session import session_scope
from ..providers.elevenlabs import ElevenLabsClient

logger = logging.getLogger(__name__)


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


@dataclasses.dataclass
class SyncReport:
    total: int = 0
    synced: int = 0
    errors: int = 0

    def as_dict(self) -> dict[str, int]:
        return dataclasses.asdict(self)


class SyncService:
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        voice_client: ElevenLabsClient,
        settings: SyncSettings,
        *,
        voice_settings: ElevenLabsSettings | None = None,
        now: Callable[[], dt.datetime] = _utcnow,
    ) -> None:
        self._factory = session_factory
        self._voice = voice_client
        self.settings = settings
        self._voice_settings = voice_settings or voice_client.settings
        self._now = now
        self._lock = threading.Lock()

    @property
    def configured(self) -> bool:
        return self._voice_settings.sync_configured

    @property
    def running(self) -> bool:
        return self._lock.locked()

    def run_scheduled(self) -> SyncReport | None:
        """Periodic entry point; returns ``None`` when skipped."""

        if not self.configured:
            logger.warning("Voice sync skipped: ELEVENLABS_API_KEY or ELEVENLABS_AGENT_ID missing")
            return None
        if not self._lock.acquire(blocking=False):
            logger.info("Voice sync already in progress; skipping this run")
            return None
        try:
            return self._sync_window(self.settings.window_hours, self.settings.batch_limit)
        finally:
            self._lock.release()

    def sync_full(self, limit: int | None = None) -> SyncReport:
        """On-demand sync over the full window."""

        if not self.configured:
            raise ConfigurationError("Voice provider sync is not configured")
        if not self._lock.acquire(blocking=False):
            raise ConflictError("A sync run is already in progress")
        try:
            return self._sync_window(self.settings.full_window_hours, limit or self.settings.full_limit)
        finally:
            self._lock.release()

    def _sync_window(self, hours: int, limit: int) -> SyncReport:
        end = self._now()
        start = end - dt.timedelta(hours=hours)
        logger.info("Voice sync started for the last %dh (limit %d)", hours, limit)
        conversations = self._voice.list_conversations(start=start, end=end, limit=limit)

        report = SyncReport(total=len(conversations))
        for item in conversations:
            conversation_id = item.get("conversation_id")
            if not conversation_id:
                report.errors += 1
                logger.warning("Conversation without id in list response: %s", item)
                continue
            try:
                self.sync_conversation(conversation_id)
            except Exception:
                # One bad conversation must not abort the batch.
                report.errors += 1
                logger.exception("Failed to sync conversation %s", conversation_id)
            else:
                report.synced += 1
        logger.info(
            "Voice sync finished: total=%d synced=%d errors=%d",
            report.total,
            report.synced,
            report.errors,
        )
        return report

    def sync_conversation(self, conversation_id: str) -> uuid.UUID:
        """Fetch one conversation and merge it through the interaction store."""

        details = self._voice.fetch_call_details(conversation_id)
        with session_scope(self._factory) as session:
            store = InteractionStore(session, now=self._now)
            existing = store.find_interaction_by_conversation(
                Provider.ELEVENLABS.value, conversation_id
            )
            fields: dict[str, Any]
            if existing is None:
                fields = details.interaction_fields()
            else:
                fields = {"started_at": details.started_at, "ended_at": details.ended_at}
            interaction = store.upsert_interaction(
                InteractionKey(
                    provider=Provider.ELEVENLABS.value,
                    channel=Channel.CALL.value,
                    direction=details.direction,
                    from_number=details.from_number,
                    to_number=details.to_number,
                    provider_conversation_id=conversation_id,
                ),
                **fields,
            )
            store.upsert_call_detail(interaction.id, **details.call_detail_fields())
            return interaction.id


__all__ = ["SyncReport", "SyncService"]
