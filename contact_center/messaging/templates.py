"""SMS bodies for the link messages agents send from the dashboard."""

from __future__ import annotations

import secrets

from ..errors import ValidationError

VERIFICATION = "verification"
ONBOARDING = "onboarding"
ACTIVATE_CARD = "activate-card"

LINK_TEMPLATES: dict[str, str] = {
    VERIFICATION: "Hi! To verify your identity, open this link: {url}",
    ONBOARDING: "Welcome! Finish your registration by following this link: {url}",
    ACTIVATE_CARD: "To activate your card, follow the instructions at {url}",
}

# Kinds whose link carries a one-off token path segment.
_TOKEN_PATHS = {VERIFICATION: "verify", ONBOARDING: "onboarding"}


def render_link_sms(kind: str, frontend_url: str) -> str:
    """Render the SMS for ``kind`` pointing at ``frontend_url``."""

    if kind not in LINK_TEMPLATES:
        raise ValidationError(f"Unknown link message: {kind}")
    base = frontend_url.rstrip("/")
    if kind in _TOKEN_PATHS:
        url = f"{base}/{_TOKEN_PATHS[kind]}/{secrets.token_urlsafe(16)}"
    else:
        url = f"{base}/{ACTIVATE_CARD}"
    return LINK_TEMPLATES[kind].format(url=url)


__all__ = ["ACTIVATE_CARD", "LINK_TEMPLATES", "ONBOARDING", "VERIFICATION", "render_link_sms"]
