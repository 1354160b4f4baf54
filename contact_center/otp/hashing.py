"""OTP code generation and hashing backed by Passlib (Argon2)."""

from __future__ import annotations

import secrets

from passlib.context import CryptContext

_otp_context = CryptContext(schemes=["argon2"], deprecated="auto")

CODE_MIN = 100000
CODE_MAX = 999999


def generate_code() -> str:
    """Return a uniformly random 6-digit code from a CSPRNG."""

    return str(CODE_MIN + secrets.randbelow(CODE_MAX - CODE_MIN + 1))


def hash_code(code: str) -> str:
    """Return a salted Argon2 hash for ``code``."""

    if not code:
        raise ValueError("Code must be non-empty.")
    return _otp_context.hash(code)


def verify_code(code: str, hashed_code: str) -> bool:
    """Validate ``code`` against ``hashed_code``."""

    if not code or not hashed_code:
        return False
    return _otp_context.verify(code, hashed_code)


__all__ = ["generate_code", "hash_code", "verify_code"]
