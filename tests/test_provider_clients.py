import datetime as dt

import pytest
import requests
from twilio.base.exceptions import TwilioRestException

from contact_center.config import BuilderBotSettings, ElevenLabsSettings, TwilioSettings
from contact_center.errors import ConfigurationError, UpstreamError
from contact_center.providers.base import SoftResult
from contact_center.providers.builderbot import BuilderBotClient
from contact_center.providers.elevenlabs import ElevenLabsClient
from contact_center.providers.twilio_sms import TwilioSmsClient


class _FakeResponse:
    def __init__(self, data=None, status_code=200, content=b""):
        self._data = data
        self.status_code = status_code
        self.content = content

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code}", response=self)

    def json(self):
        if self._data is None:
            raise ValueError("no json")
        return self._data


class _FakeSession:
    def __init__(self, responses):
        self._responses = list(responses)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _voice(responses, **overrides):
    settings = ElevenLabsSettings(api_key="xi-key", agent_id="agent-1", **overrides)
    session = _FakeSession(responses)
    return ElevenLabsClient(settings, session=session), session


def test_voice_client_sends_api_key_and_bounded_timeout():
    client, session = _voice([_FakeResponse({"conversation_id": "c1"})], timeout_seconds=12)
    assert client.get_conversation("c1") == {"conversation_id": "c1"}
    call = session.calls[0]
    assert call["url"] == "https://api.elevenlabs.io/v1/convai/conversations/c1"
    assert call["headers"]["xi-api-key"] == "xi-key"
    assert call["timeout"] == 12


def test_voice_client_requires_api_key():
    client = ElevenLabsClient(ElevenLabsSettings(), session=_FakeSession([]))
    with pytest.raises(ConfigurationError):
        client.get_conversation("c1")


def test_voice_client_maps_http_errors():
    client, _ = _voice([_FakeResponse({}, status_code=500)])
    with pytest.raises(UpstreamError) as excinfo:
        client.get_conversation("c1")
    assert excinfo.value.status == 500

    client, _ = _voice([requests.ConnectionError("down")])
    with pytest.raises(UpstreamError):
        client.get_conversation("c1")


def test_fetch_call_details_falls_back_to_audio_reference():
    client, _ = _voice([_FakeResponse({"conversation_id": "c1", "status": "done"})])
    details = client.fetch_call_details("c1")
    assert details.status == "COMPLETED"
    assert details.recording_url == "api://elevenlabs/conversations/c1/audio"


def test_list_conversations_follows_cursor_until_limit():
    client, session = _voice(
        [
            _FakeResponse(
                {"conversations": [{"conversation_id": "a"}, {"conversation_id": "b"}], "has_more": True, "next_cursor": "n1"}
            ),
            _FakeResponse({"conversations": [{"conversation_id": "c"}], "has_more": False}),
        ]
    )
    start = dt.datetime(2026, 1, 1, tzinfo=dt.timezone.utc)
    end = start + dt.timedelta(hours=2)
    items = client.list_conversations(start=start, end=end, limit=10)

    assert [item["conversation_id"] for item in items] == ["a", "b", "c"]
    first, second = session.calls
    assert first["params"]["agent_id"] == "agent-1"
    assert first["params"]["call_start_after_unix"] == int(start.timestamp())
    assert first["params"]["call_start_before_unix"] == int(end.timestamp())
    assert second["params"]["cursor"] == "n1"


def test_audio_download_returns_bytes():
    client, session = _voice([_FakeResponse(content=b"mp3")])
    assert client.get_conversation_audio("c1") == b"mp3"
    assert session.calls[0]["headers"]["Accept"] == "audio/mpeg"


def test_soft_result_captures_only_upstream_errors():
    def fail():
        raise UpstreamError("x")

    assert not SoftResult.capture(fail).ok
    assert SoftResult.capture(lambda: 1).value == 1

    def broken():
        raise KeyError("bug")

    with pytest.raises(KeyError):
        SoftResult.capture(broken)


def test_builderbot_send_message():
    session = _FakeSession([_FakeResponse({"message_id": "wamid-1"})])
    client = BuilderBotClient(
        BuilderBotSettings(api_key="bb-key", bot_id="bot-1"), session=session
    )
    assert client.send_message("5491112345678", "hola", "https://x/y.jpg") == "wamid-1"
    call = session.calls[0]
    assert call["url"] == "https://app.builderbot.cloud/api/v2/bot-1/messages"
    assert call["headers"]["x-api-builderbot"] == "bb-key"
    assert call["json"] == {
        "messages": {"content": "hola", "mediaUrl": "https://x/y.jpg"},
        "number": "5491112345678",
        "checkIfExists": False,
    }


def test_builderbot_requires_configuration():
    client = BuilderBotClient(BuilderBotSettings(), session=_FakeSession([]))
    with pytest.raises(ConfigurationError):
        client.send_message("1", "x")


class _FakeMessages:
    def __init__(self, error=None):
        self.error = error
        self.created = []

    def create(self, **kwargs):
        if self.error is not None:
            raise self.error
        self.created.append(kwargs)

        class _Message:
            sid = "SM1"
            status = "queued"

        return _Message()


class _FakeTwilio:
    def __init__(self, error=None):
        self.messages = _FakeMessages(error)


def _twilio_settings():
    return TwilioSettings(account_sid="AC1", auth_token="tok", from_number="+15550000000")


def test_twilio_send_formats_destination():
    fake = _FakeTwilio()
    sent = TwilioSmsClient(_twilio_settings(), client=fake).send_sms("11 1234 5678", "code")
    assert sent.sid == "SM1"
    assert sent.to == "+541112345678"
    assert fake.messages.created == [{"body": "code", "from_": "+15550000000", "to": "+541112345678"}]


def test_twilio_known_error_codes_are_described():
    error = TwilioRestException(400, "https://api.twilio.com", msg="bad", code=21211)
    client = TwilioSmsClient(_twilio_settings(), client=_FakeTwilio(error))
    with pytest.raises(UpstreamError) as excinfo:
        client.send_sms("1112345678", "code")
    assert excinfo.value.message == "Invalid destination phone number"


def test_twilio_requires_configuration():
    with pytest.raises(ConfigurationError):
        TwilioSmsClient(TwilioSettings()).send_sms("1112345678", "code")
