"""SMS gateway client backed by the official Twilio SDK."""

from __future__ import annotations

import dataclasses
import logging

import requests
from twilio.base.exceptions import TwilioException, TwilioRestException
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client

from ..config import TwilioSettings
from ..errors import ConfigurationError, UpstreamError
from ..phone import mask_phone, to_e164

logger = logging.getLogger(__name__)

_ERROR_MESSAGES = {
    21211: "Invalid destination phone number",
    21610: "Destination number is unverified (trial account) or has opted out",
    21614: "Destination number is not a mobile number",
}


@dataclasses.dataclass(frozen=True)
class SentSms:
    sid: str
    status: str | None
    to: str


class TwilioSmsClient:
    provider = "twilio"

    def __init__(self, settings: TwilioSettings, *, client: Client | None = None) -> None:
        self.settings = settings
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            if not self.settings.configured:
                raise ConfigurationError(
                    "TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN and TWILIO_FROM_NUMBER must be set"
                )
            self._client = Client(
                self.settings.account_sid,
                self.settings.auth_token,
                http_client=TwilioHttpClient(timeout=self.settings.timeout_seconds),
            )
        return self._client

    def send_sms(self, to: str, body: str) -> SentSms:
        """Send ``body`` to ``to`` and return the message SID."""

        destination = to_e164(to, self.settings.default_country_code)
        try:
            message = self.client.messages.create(
                body=body, from_=self.settings.from_number, to=destination
            )
        except TwilioRestException as exc:
            detail = _ERROR_MESSAGES.get(exc.code or 0, exc.msg)
            logger.warning("Twilio rejected SMS to %s: %s (%s)", mask_phone(destination), detail, exc.code)
            raise UpstreamError(detail, provider=self.provider, status=exc.status) from exc
        except (TwilioException, requests.RequestException) as exc:
            logger.warning("Twilio SMS to %s failed: %s", mask_phone(destination), exc)
            raise UpstreamError(f"Twilio request failed: {exc}", provider=self.provider) from exc
        logger.info("SMS sent to %s sid=%s", mask_phone(destination), message.sid)
        return SentSms(sid=message.sid, status=message.status, to=destination)


__all__ = ["SentSms", "TwilioSmsClient"]
