import datetime as dt

import pytest

from contact_center.normalizers import (
    UNKNOWN,
    BuilderBotNormalizer,
    ElevenLabsNormalizer,
    TwilioStatusNormalizer,
    get_normalizer,
)
from contact_center.normalizers.base import first_present, lookup, parse_timestamp


def test_lookup_supports_nested_keys_and_list_indexes():
    payload = {"a": {"b": [{"c": 1}]}}
    assert lookup(payload, "a.b.0.c") == 1
    assert first_present([payload], ("missing", "a.b.0.c")) == 1
    assert first_present([payload], ("missing",), default="x") == "x"


def test_first_present_skips_empty_strings_and_none():
    sources = [{"id": "", "message_id": None}, {"id": "from-second-source"}]
    assert first_present(sources, ("message_id", "id")) == "from-second-source"


@pytest.mark.parametrize(
    "value, expected",
    [
        (1700000000, dt.datetime(2023, 11, 14, 22, 13, 20, tzinfo=dt.timezone.utc)),
        (1700000000000, dt.datetime(2023, 11, 14, 22, 13, 20, tzinfo=dt.timezone.utc)),
        ("2024-03-01T10:00:00Z", dt.datetime(2024, 3, 1, 10, 0, tzinfo=dt.timezone.utc)),
        ("not a date", None),
        (None, None),
    ],
)
def test_parse_timestamp(value, expected):
    assert parse_timestamp(value) == expected


def test_voice_normalizer_is_total_on_empty_payload():
    call = ElevenLabsNormalizer().normalize({})
    assert call.from_number == UNKNOWN
    assert call.to_number == UNKNOWN
    assert call.conversation_id is None
    assert call.status is None
    assert call.direction == "INBOUND"


def test_voice_normalizer_maps_status_and_outcome_case_insensitively():
    call = ElevenLabsNormalizer().normalize(
        {"conversation_id": "conv-1", "status": "DONE", "outcome": "Escalated"}
    )
    assert call.status == "COMPLETED"
    assert call.outcome == "ESCALATED"


def test_voice_normalizer_passes_unknown_vendor_states_through():
    call = ElevenLabsNormalizer().normalize({"status": "voicemail", "outcome": "callback"})
    assert call.status == "voicemail"
    assert call.outcome == "callback"


def test_voice_summary_prefers_analysis_field_over_legacy_keys():
    normalizer = ElevenLabsNormalizer()
    payload = {
        "analysis": {"transcript_summary": "from analysis"},
        "summary": "legacy",
        "call_summary": "older",
    }
    assert normalizer.normalize(payload).summary == "from analysis"
    assert normalizer.normalize({"ai_summary": "ai", "call_summary": "call"}).summary == "ai"


def test_voice_normalizer_reads_post_call_envelope():
    payload = {
        "type": "post_call_transcription",
        "event_timestamp": 1700000100,
        "data": {
            "conversation_id": "conv-9",
            "status": "done",
            "transcript": [
                {"role": "agent", "message": "Hello"},
                {"role": "user", "message": "Hi, I need help"},
            ],
            "metadata": {
                "start_time_unix_secs": 1700000000,
                "call_duration_secs": 42,
                "phone_call": {"direction": "outbound", "external_number": "+5491112345678"},
            },
        },
    }
    call = ElevenLabsNormalizer().normalize(payload)
    assert call.conversation_id == "conv-9"
    assert call.event_type == "post_call_transcription"
    assert call.direction == "OUTBOUND"
    assert call.from_number == "+5491112345678"
    assert call.duration_seconds == 42
    assert call.transcript_text == "Agent: Hello\n\nCustomer: Hi, I need help"
    assert call.started_at == dt.datetime.fromtimestamp(1700000000, tz=dt.timezone.utc)


def test_voice_idempotency_key_uses_event_id():
    normalizer = ElevenLabsNormalizer()
    assert normalizer.idempotency_key({"event_id": "evt-1", "x": 1}) == "elevenlabs:evt-1"


def test_voice_idempotency_hash_ignores_event_timestamp():
    normalizer = ElevenLabsNormalizer()
    first = {"event_timestamp": 1, "data": {"conversation_id": "c"}}
    second = {"event_timestamp": 2, "data": {"conversation_id": "c"}}
    other = {"event_timestamp": 1, "data": {"conversation_id": "d"}}
    assert normalizer.idempotency_key(first) == normalizer.idempotency_key(second)
    assert normalizer.idempotency_key(first) != normalizer.idempotency_key(other)


def test_voice_agent_prefers_agent_over_assigned_agent():
    call = ElevenLabsNormalizer().normalize({"agent": "ana", "assigned_agent": "bot-7"})
    assert call.assigned_agent == "ana"
    named = ElevenLabsNormalizer().normalize({"agentName": "Ana", "agentId": "a-1"})
    assert named.assigned_agent == "Ana"


def test_voice_thread_id_falls_back_to_call_and_session_ids():
    normalizer = ElevenLabsNormalizer()
    assert normalizer.normalize({"conversation_id": "conv-1", "call_id": "CA1"}).thread_id == "conv-1"
    assert normalizer.normalize({"call_id": "CA1"}).thread_id == "CA1"
    assert normalizer.normalize({"sessionId": "s-1"}).thread_id == "s-1"
    assert normalizer.normalize({}).thread_id is None


def test_whatsapp_normalizer_reads_envelope_and_cleans_jid():
    message = BuilderBotNormalizer().normalize(
        {
            "eventName": "message.incoming",
            "data": {
                "key": {"id": "wamid-1", "remoteJid": "5491112345678@s.whatsapp.net"},
                "body": "hola",
                "name": "Ana",
            },
        }
    )
    assert message.is_incoming
    assert message.message_id == "wamid-1"
    assert message.from_number == "5491112345678"
    assert message.text == "hola"
    assert message.customer_name == "Ana"
    assert message.timestamp.tzinfo is not None


def test_whatsapp_outgoing_and_empty_events():
    normalizer = BuilderBotNormalizer()
    outgoing = normalizer.normalize({"eventName": "message.outgoing", "data": {"body": "x"}})
    assert not outgoing.is_incoming
    empty = normalizer.normalize({"eventName": "message.incoming", "data": {"from": "123"}})
    assert empty.is_empty
    media = normalizer.normalize(
        {"eventName": "message.incoming", "data": {"from": "123", "urlTempFile": "https://x/y.jpg"}}
    )
    assert not media.is_empty


def test_sms_status_normalizer_and_key_per_status():
    normalizer = TwilioStatusNormalizer()
    payload = {"MessageSid": "SM1", "MessageStatus": "Delivered"}
    status = normalizer.normalize(payload)
    assert status.message_sid == "SM1"
    assert status.status == "delivered"
    assert normalizer.idempotency_key(payload) == "twilio:SM1:delivered"
    assert normalizer.idempotency_key({"MessageSid": "SM1", "MessageStatus": "sent"}) == "twilio:SM1:sent"
    assert normalizer.normalize({}).status == UNKNOWN


def test_registry_returns_instances():
    assert isinstance(get_normalizer("ElevenLabs"), ElevenLabsNormalizer)
    with pytest.raises(KeyError):
        get_normalizer("unknown-provider")
