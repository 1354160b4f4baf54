"""WhatsApp bot (BuilderBot) send API client."""

from __future__ import annotations

import time
from typing import Any

import requests

from ..config import BuilderBotSettings
from ..errors import ConfigurationError
from .base import JsonHttpClient


class BuilderBotClient(JsonHttpClient):
    provider = "builderbot"

    def __init__(self, settings: BuilderBotSettings, *, session: requests.Session | None = None) -> None:
        super().__init__(
            settings.base_url,
            headers={"x-api-builderbot": settings.api_key or ""},
            timeout=settings.timeout_seconds,
            session=session,
        )
        self.settings = settings

    def send_message(self, number: str, content: str, media_url: str | None = None) -> str:
        """Send a WhatsApp message and return the provider message id."""

        if not self.settings.api_key or not self.settings.bot_id:
            raise ConfigurationError("BUILDERBOT_API_KEY and BUILDERBOT_BOT_ID must be set")
        messages: dict[str, Any] = {"content": content}
        if media_url:
            messages["mediaUrl"] = media_url
        body = {"messages": messages, "number": number, "checkIfExists": False}
        data = self._json("POST", f"/api/v2/{self.settings.bot_id}/messages", json=body) or {}
        message_id = data.get("message_id") or data.get("id")
        return str(message_id) if message_id else f"bb-{int(time.time() * 1000)}"


__all__ = ["BuilderBotClient"]
