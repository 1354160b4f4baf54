"""Phone number helpers used for lookup, sending and log masking."""

from __future__ import annotations

import re

import phonenumbers

from .errors import ValidationError

_SEPARATORS = re.compile(r"[\s\-().]")


def normalize_phone(phone: str | None) -> str:
    """Return ``phone`` without separators or a leading ``+``.

    ``"+54 11 1234-5678"`` and ``"541112345678"`` both become
    ``"541112345678"``. Applying it twice gives the same result.
    """

    if not phone:
        return ""
    stripped = _SEPARATORS.sub("", str(phone))
    return stripped[1:] if stripped.startswith("+") else stripped


def default_region(country_code: str) -> str:
    """Map a calling code such as ``"54"`` to its main region (``"AR"``)."""

    try:
        region = phonenumbers.region_code_for_country_code(int(country_code))
    except ValueError:
        region = phonenumbers.UNKNOWN_REGION
    if region == phonenumbers.UNKNOWN_REGION:
        raise ValidationError(f"Unknown default country code: {country_code}")
    return region


def to_e164(phone: str, default_country_code: str = "54") -> str:
    """Format ``phone`` as E.164 for SMS delivery.

    Numbers without ``+`` are parsed as national numbers of the default
    country, so trunk prefixes like ``0`` are dropped. Raises
    :class:`ValidationError` when the input cannot be a phone number.
    """

    raw = (phone or "").strip()
    region = None if raw.startswith("+") else default_region(default_country_code)
    try:
        parsed = phonenumbers.parse(raw, region)
    except phonenumbers.NumberParseException as exc:
        raise ValidationError(f"Invalid phone number: {exc}") from exc
    # Length check only; numbering-plan validity is left to the SMS gateway.
    if not phonenumbers.is_possible_number(parsed):
        raise ValidationError("Invalid phone number")
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


def mask_phone(phone: str | None) -> str | None:
    """Mask all but the last four digits of ``phone``."""

    if not phone:
        return phone
    digits = normalize_phone(phone)
    if len(digits) <= 4 or not digits.isdigit():
        return phone
    return "*" * (len(digits) - 4) + digits[-4:]


__all__ = ["default_region", "mask_phone", "normalize_phone", "to_e164"]
