"""Voice-AI (ElevenLabs) conversational API client."""

from __future__ import annotations

import datetime as dt
import logging
from typing import Any

import requests

from ..config import ElevenLabsSettings
from ..errors import ConfigurationError
from ..normalizers.elevenlabs import ElevenLabsNormalizer, NormalizedCall
from .base import JsonHttpClient

logger = logging.getLogger(__name__)

_PAGE_SIZE = 100


class ElevenLabsClient(JsonHttpClient):
    provider = "elevenlabs"

    def __init__(
        self,
        settings: ElevenLabsSettings,
        *,
        session: requests.Session | None = None,
        normalizer: ElevenLabsNormalizer | None = None,
    ) -> None:
        super().__init__(
            settings.api_url,
            headers={"xi-api-key": settings.api_key or ""},
            timeout=settings.timeout_seconds,
            session=session,
        )
        self.settings = settings
        self.normalizer = normalizer or ElevenLabsNormalizer()

    def _require_key(self) -> None:
        if not self.settings.api_key:
            raise ConfigurationError("ELEVENLABS_API_KEY is not configured")

    def get_conversation(self, conversation_id: str) -> dict[str, Any]:
        """Return the raw conversation detail document."""

        self._require_key()
        return self._json("GET", f"/v1/convai/conversations/{conversation_id}")

    def get_conversation_audio(self, conversation_id: str) -> bytes:
        self._require_key()
        response = self._request(
            "GET",
            f"/v1/convai/conversations/{conversation_id}/audio",
            headers={"Accept": "audio/mpeg"},
        )
        return response.content

    def fetch_call_details(self, conversation_id: str) -> NormalizedCall:
        """Fetch and normalize one conversation, filling in the audio reference."""

        detail = self.get_conversation(conversation_id)
        normalized = self.normalizer.normalize(detail)
        if not normalized.conversation_id:
            normalized.conversation_id = conversation_id
        if not normalized.recording_url and detail.get("has_audio", True):
            normalized.recording_url = f"api://elevenlabs/conversations/{conversation_id}/audio"
        return normalized

    def list_conversations(
        self,
        *,
        start: dt.datetime,
        end: dt.datetime,
        limit: int,
    ) -> list[dict[str, Any]]:
        """List conversations for the configured agent started in ``[start, end]``."""

        self._require_key()
        conversations: list[dict[str, Any]] = []
        cursor: str | None = None
        while len(conversations) < limit:
            params: dict[str, Any] = {
                "page_size": min(_PAGE_SIZE, limit - len(conversations)),
                "call_start_after_unix": int(start.timestamp()),
                "call_start_before_unix": int(end.timestamp()),
            }
            if self.settings.agent_id:
                params["agent_id"] = self.settings.agent_id
            if cursor:
                params["cursor"] = cursor
            page = self._json("GET", "/v1/convai/conversations", params=params)
            conversations.extend(page.get("conversations") or [])
            cursor = page.get("next_cursor")
            if not page.get("has_more") or not cursor:
                break
        logger.debug("Listed %d conversations from ElevenLabs", len(conversations))
        return conversations[:limit]


__all__ = ["ElevenLabsClient"]
