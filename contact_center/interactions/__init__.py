"""Interaction aggregate: reconciliation store and dashboard queries."""

from __future__ import annotations

from .store import InteractionKey, InteractionStore

__all__ = ["InteractionKey", "InteractionStore"]
