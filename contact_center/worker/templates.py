"""SMS bodies for OTP delivery, keyed by purpose."""

from __future__ import annotations

from typing import Any

from ..models.enums import OtpPurpose

TEMPLATES: dict[str, str] = {
    OtpPurpose.PASSWORD_RESET.value: (
        "Your password reset code is {otp}. It expires in {ttl_minutes} minutes. "
        "If you did not request it, ignore this message."
    ),
    OtpPurpose.TX_CONFIRMATION.value: (
        "Use code {otp} to confirm your transaction{detail}. Never share this code."
    ),
    OtpPurpose.IDENTITY_VERIFICATION.value: (
        "Your verification code is {otp}. Valid for {ttl_minutes} minutes. Do not share this code."
    ),
    OtpPurpose.LOGIN_2FA.value: (
        "Your login code is {otp}. If you are not trying to sign in, contact us."
    ),
}

DEFAULT_TEMPLATE = "Your code is {otp}. Do not share this code."

REDACTED = "******"


class _Defaults(dict):
    def __missing__(self, key: str) -> str:
        return ""


def render_sms(
    purpose: str,
    otp: str,
    template_data: dict[str, Any] | None = None,
    *,
    ttl_minutes: int = 5,
) -> str:
    """Render the SMS text for ``purpose``; unknown purposes use the default."""

    data = _Defaults({k: v for k, v in (template_data or {}).items() if v is not None})
    if "amount" in data and "detail" not in data:
        data["detail"] = f" of {data['amount']}"
    data["ttl_minutes"] = ttl_minutes
    data["otp"] = otp
    template = TEMPLATES.get(purpose, DEFAULT_TEMPLATE)
    return template.format_map(data)


__all__ = ["DEFAULT_TEMPLATE", "REDACTED", "TEMPLATES", "render_sms"]
