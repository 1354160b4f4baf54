"""SMS gateway (Twilio) delivery-status normalizer."""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from typing import Any

from .base import UNKNOWN, PayloadNormalizer, as_text, first_present

FIELD_KEYS: dict[str, tuple[str, ...]] = {
    "message_sid": ("MessageSid", "message_sid", "SmsSid", "sms_sid"),
    "status": ("MessageStatus", "message_status", "SmsStatus", "Status", "status"),
    "error_code": ("ErrorCode", "error_code"),
    "error_message": ("ErrorMessage", "error_message"),
}


@dataclasses.dataclass
class NormalizedSmsStatus:
    message_sid: str | None
    status: str
    error_code: str | None
    error_message: str | None


class TwilioStatusNormalizer(PayloadNormalizer):
    provider_name = "twilio"

    def normalize(self, payload: Mapping[str, Any]) -> NormalizedSmsStatus:
        sources = [payload]
        status = as_text(first_present(sources, FIELD_KEYS["status"]))
        return NormalizedSmsStatus(
            message_sid=as_text(first_present(sources, FIELD_KEYS["message_sid"])),
            status=status.lower() if status else UNKNOWN,
            error_code=as_text(first_present(sources, FIELD_KEYS["error_code"])),
            error_message=as_text(first_present(sources, FIELD_KEYS["error_message"])),
        )

    def idempotency_key(self, payload: Mapping[str, Any]) -> str:
        # One SID moves through several statuses; each is a distinct event.
        normalized = self.normalize(payload)
        if normalized.message_sid:
            return f"{self.provider_name}:{normalized.message_sid}:{normalized.status}"
        return super().idempotency_key(payload)


__all__ = ["NormalizedSmsStatus", "TwilioStatusNormalizer"]
