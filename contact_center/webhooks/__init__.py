"""Provider webhook dispatch."""

from __future__ import annotations

from .service import WebhookDispatcher, WebhookResult

__all__ = ["WebhookDispatcher", "WebhookResult"]
