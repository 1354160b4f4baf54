"""Customer directory."""

from __future__ import annotations

from .service import CustomerService

__all__ = ["CustomerService"]
