"""Voice provider reconciliation."""

from __future__ import annotations

from .service import SyncReport, SyncService

__all__ = ["SyncReport", "SyncService"]
