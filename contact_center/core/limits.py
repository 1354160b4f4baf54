"""Shared SlowAPI limiter keyed by client IP."""

from __future__ import annotations

from slowapi import Limiter

from .auth import get_client_ip

OTP_CREATE_LIMIT = "10/minute"
OTP_VERIFY_LIMIT = "20/minute"

limiter = Limiter(key_func=get_client_ip)

__all__ = ["OTP_CREATE_LIMIT", "OTP_VERIFY_LIMIT", "limiter"]
