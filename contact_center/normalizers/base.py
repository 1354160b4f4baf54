"""Shared lookup helpers for provider payload normalizers.

Normalizers are total: every canonical field is resolved from an ordered tuple
of alternate key paths (dotted for nested keys), the first present value wins,
and a field with no present alternative falls back to ``None`` or to the
explicit :data:`UNKNOWN` sentinel. Adding a new vendor key variant means
editing a tuple, not code.
"""

from __future__ import annotations

import datetime as dt
import hashlib
import json
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any, ClassVar

#: Sentinel for party/status fields that no alternative key supplied.
UNKNOWN = "unknown"

_MISSING = object()

KeyPaths = Sequence[str]


def lookup(payload: Any, path: str) -> Any:
    """Return the value at dotted ``path`` in ``payload`` or ``_MISSING``."""

    current: Any = payload
    for part in path.split("."):
        if isinstance(current, Mapping) and part in current:
            current = current[part]
        elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            return _MISSING
    return current


def _present(value: Any) -> bool:
    return value is not _MISSING and value is not None and value != ""


def first_present(sources: Sequence[Any], paths: KeyPaths, default: Any = None) -> Any:
    """Return the first present value for ``paths`` across ``sources``.

    Paths are tried in order; for each path every source is checked before
    moving on, so path preference always beats source preference.
    """

    for path in paths:
        for source in sources:
            value = lookup(source, path)
            if _present(value):
                return value
    return default


def as_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True, default=str)
    text = str(value).strip()
    return text or None


def as_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def parse_timestamp(value: Any) -> dt.datetime | None:
    """Parse epoch seconds/milliseconds or ISO-8601 text into an aware datetime."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, dt.datetime):
        return value if value.tzinfo else value.replace(tzinfo=dt.timezone.utc)
    if isinstance(value, str):
        candidate = value.strip()
        if not candidate:
            return None
        try:
            value = float(candidate)
        except ValueError:
            if candidate.endswith(("Z", "z")):
                candidate = candidate[:-1] + "+00:00"
            try:
                parsed = dt.datetime.fromisoformat(candidate)
            except ValueError:
                return None
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=dt.timezone.utc)
    if isinstance(value, (int, float)):
        seconds = float(value)
        if seconds > 1e11:
            seconds /= 1000.0
        try:
            return dt.datetime.fromtimestamp(seconds, tz=dt.timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    return None


def map_enum(value: Any, table: Mapping[str, str]) -> str | None:
    """Case-insensitive lookup; unrecognised values pass through unchanged."""

    text = as_text(value)
    if text is None:
        return None
    return table.get(text.lower(), text)


def payload_hash(payload: Any, *, exclude: frozenset[str] = frozenset()) -> str:
    """Stable SHA-256 of ``payload`` with top-level ``exclude`` keys removed."""

    if isinstance(payload, Mapping):
        payload = {k: v for k, v in payload.items() if k not in exclude}
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


class PayloadNormalizer(ABC):
    """Maps one provider's webhook payloads to a canonical dataclass."""

    #: Lowercase provider identifier used in routes and the registry.
    provider_name: ClassVar[str]

    @abstractmethod
    def normalize(self, payload: Mapping[str, Any]) -> Any:
        """Convert ``payload`` into canonical fields without raising."""

    def idempotency_key(self, payload: Mapping[str, Any]) -> str:
        """Key used to detect duplicate deliveries of ``payload``."""

        return f"{self.provider_name}:{payload_hash(payload)}"


__all__ = [
    "UNKNOWN",
    "PayloadNormalizer",
    "as_int",
    "as_text",
    "first_present",
    "lookup",
    "map_enum",
    "parse_timestamp",
    "payload_hash",
]
