"""Outbound messaging."""

from __future__ import annotations

from .service import MessagingService, SendReceipt

__all__ = ["MessagingService", "SendReceipt"]
