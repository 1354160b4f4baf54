import pytest
from sqlalchemy import func, select

from contact_center.audit import AuditLogger
from contact_center.customers.schemas import CustomerCreate
from contact_center.customers.service import CustomerService
from contact_center.errors import AuthenticationError, UpstreamError
from contact_center.interactions.store import InteractionKey, InteractionStore
from contact_center.models import AuditLog, CallDetail, Interaction, InteractionEvent, Message
from contact_center.webhooks.service import WebhookDispatcher, check_token

from conftest import SMS_TOKEN, VOICE_TOKEN, WHATSAPP_TOKEN


def _count(session, model, *where):
    return session.scalar(select(func.count()).select_from(model).where(*where))


@pytest.fixture
def dispatcher(session, settings, voice_client, clock):
    store = InteractionStore(session, now=clock)
    return WebhookDispatcher(
        settings,
        store=store,
        audit=AuditLogger(session),
        voice_client=voice_client,
        now=clock,
    )


def _call_payload(**extra):
    payload = {
        "event_id": "evt-1",
        "conversation_id": "conv-1",
        "from": "+5491112345678",
        "to": "+541140000000",
        "status": "done",
        "summary": "Customer asked about billing",
        "transcript": "Agent: hi",
        "recording_url": "https://example.com/a.mp3",
    }
    payload.update(extra)
    return payload


def test_check_token_requires_configured_secret():
    with pytest.raises(AuthenticationError):
        check_token(None, "anything", provider="elevenlabs")
    with pytest.raises(AuthenticationError):
        check_token("secret", "wrong", provider="elevenlabs")
    check_token("secret", "secret", provider="elevenlabs")


def test_voice_webhook_creates_interaction_event_and_detail(dispatcher, session):
    result = dispatcher.handle_elevenlabs(_call_payload(), VOICE_TOKEN)

    interaction = session.get(Interaction, result.interaction_id)
    assert interaction.status == "COMPLETED"
    assert interaction.channel == "CALL"
    assert interaction.provider_conversation_id == "conv-1"
    assert interaction.call_detail.summary == "Customer asked about billing"
    assert _count(session, InteractionEvent) == 1
    assert _count(session, AuditLog, AuditLog.action == "webhook.elevenlabs") == 1
    assert result.as_response() == {"success": True, "interactionId": str(interaction.id)}


def test_voice_webhook_is_idempotent(dispatcher, session):
    first = dispatcher.handle_elevenlabs(_call_payload(), VOICE_TOKEN)
    second = dispatcher.handle_elevenlabs(_call_payload(), VOICE_TOKEN)

    assert second.duplicate
    assert second.interaction_id == first.interaction_id
    assert _count(session, InteractionEvent) == 1
    assert _count(session, Interaction) == 1


def test_voice_webhook_rejects_bad_token_without_writing(dispatcher, session):
    with pytest.raises(AuthenticationError):
        dispatcher.handle_elevenlabs(_call_payload(), "wrong")
    with pytest.raises(AuthenticationError):
        dispatcher.handle_elevenlabs(_call_payload(), None)
    assert _count(session, Interaction) == 0


def test_later_event_merges_into_same_interaction(dispatcher, session):
    first = dispatcher.handle_elevenlabs(
        {"event_id": "evt-a", "conversation_id": "conv-2", "status": "in_progress", "intent": "billing"},
        VOICE_TOKEN,
    )
    second = dispatcher.handle_elevenlabs(
        {"event_id": "evt-b", "conversation_id": "conv-2", "status": "done", "outcome": "resolved"},
        VOICE_TOKEN,
    )
    interaction = session.get(Interaction, first.interaction_id)
    assert second.interaction_id == first.interaction_id
    assert interaction.status == "COMPLETED"
    assert interaction.intent == "billing"
    assert interaction.outcome == "RESOLVED"
    assert _count(session, InteractionEvent) == 2


def test_thin_webhook_is_enriched_from_conversation_api(dispatcher, session, voice_client):
    voice_client.add(
        "conv-3",
        analysis={"transcript_summary": "Refund requested"},
        transcript=[{"role": "agent", "message": "Hello"}],
        metadata={"call_duration_secs": 61},
        intent="refund",
    )
    result = dispatcher.handle_elevenlabs({"event_id": "evt-3", "conversation_id": "conv-3"}, VOICE_TOKEN)

    interaction = session.get(Interaction, result.interaction_id)
    session.refresh(interaction)
    assert interaction.intent == "refund"
    detail = session.scalars(select(CallDetail).where(CallDetail.interaction_id == interaction.id)).one()
    assert detail.summary == "Refund requested"
    assert detail.transcript_text == "Agent: Hello"
    assert detail.duration_seconds == 61
    assert detail.recording_url == "api://elevenlabs/conversations/conv-3/audio"


def test_enrichment_failure_does_not_fail_the_webhook(dispatcher, session, voice_client):
    voice_client.failures["conv-4"] = UpstreamError("boom", provider="elevenlabs", status=500)
    result = dispatcher.handle_elevenlabs(
        {"event_id": "evt-4", "conversation_id": "conv-4", "status": "done"}, VOICE_TOKEN
    )
    assert result.success
    audit = session.scalars(select(AuditLog).where(AuditLog.action == "webhook.elevenlabs")).one()
    assert audit.details["enrichment"] == "failed"


def test_call_init_returns_customer_variables(dispatcher, session):
    CustomerService(session).create(CustomerCreate(name="Ana Perez", phone="+54 9 11 1234-5678"))
    body = dispatcher.handle_call_init({"caller_id": "5491112345678"}, VOICE_TOKEN)
    assert body["type"] == "conversation_initiation_client_data"
    assert body["dynamic_variables"]["customer_name"] == "Ana Perez"
    assert body["dynamic_variables"]["customer_status"] == "ACTIVE"

    unknown = dispatcher.handle_call_init({"caller_id": "+1 555 000 0000"}, VOICE_TOKEN)
    assert unknown["dynamic_variables"]["customer_status"] == "UNKNOWN"


def _whatsapp_payload(message_id="wamid-1", body="hola"):
    return {
        "eventName": "message.incoming",
        "data": {"from": "5491112345678", "body": body, "name": "Ana", "key": {"id": message_id}},
    }


def test_whatsapp_message_creates_thread_and_message(session, settings, clock):
    from dataclasses import replace

    from contact_center.config import BuilderBotSettings

    settings = replace(settings, builderbot=BuilderBotSettings(webhook_token=WHATSAPP_TOKEN))
    dispatcher = WebhookDispatcher(
        settings, store=InteractionStore(session, now=clock), audit=AuditLogger(session), now=clock
    )
    first = dispatcher.handle_builderbot(_whatsapp_payload(), WHATSAPP_TOKEN)
    second = dispatcher.handle_builderbot(_whatsapp_payload("wamid-2", "otra"), WHATSAPP_TOKEN)
    replay = dispatcher.handle_builderbot(_whatsapp_payload(), WHATSAPP_TOKEN)

    assert first.interaction_id == second.interaction_id == replay.interaction_id
    assert replay.duplicate
    interaction = session.get(Interaction, first.interaction_id)
    assert interaction.channel == "WHATSAPP"
    assert interaction.status == "IN_PROGRESS"
    assert interaction.customer_ref == "Ana"
    assert _count(session, Message) == 2
    with pytest.raises(AuthenticationError):
        dispatcher.handle_builderbot(_whatsapp_payload("wamid-3"), "wrong")


def test_whatsapp_ignores_other_events_and_empty_messages(dispatcher, session):
    outgoing = dispatcher.handle_builderbot({"eventName": "message.outgoing", "data": {"body": "x"}}, None)
    empty = dispatcher.handle_builderbot({"eventName": "message.incoming", "data": {"from": "123"}}, None)
    assert outgoing.ignored and empty.ignored
    assert _count(session, Interaction) == 0


def test_whatsapp_attachment_placeholder(dispatcher, session):
    result = dispatcher.handle_builderbot(
        {
            "eventName": "message.incoming",
            "data": {"from": "5491112345678", "urlTempFile": "https://files/x.jpg", "key": {"id": "m-9"}},
        },
        None,
    )
    message = session.get(Message, result.message_id)
    assert message.text == "[attachment]"
    assert message.media_url == "https://files/x.jpg"


def _sms_message(session, clock, sid="SM1"):
    store = InteractionStore(session, now=clock)
    interaction = store.upsert_interaction(
        InteractionKey(
            provider="TWILIO",
            channel="SMS",
            direction="OUTBOUND",
            from_number="system",
            to_number="+5491112345678",
        ),
        status="IN_PROGRESS",
    )
    return store.create_message(
        interaction.id,
        channel="SMS",
        direction="OUTBOUND",
        provider_message_id=sid,
        text="hi",
        provider_status="queued",
    )


def test_sms_status_updates_message_and_interaction(dispatcher, session, clock):
    message = _sms_message(session, clock)
    dispatcher.handle_twilio_status({"MessageSid": "SM1", "MessageStatus": "sent"}, SMS_TOKEN)
    result = dispatcher.handle_twilio_status({"MessageSid": "SM1", "MessageStatus": "delivered"}, None)

    assert result.message_id == message.id
    assert message.provider_status == "delivered"
    assert message.delivered_at is not None
    interaction = session.get(Interaction, message.interaction_id)
    assert interaction.status == "COMPLETED"
    assert interaction.ended_at is not None
    assert _count(session, InteractionEvent, InteractionEvent.type == "sms.status") == 2


def test_sms_undelivered_marks_interaction_failed(dispatcher, session, clock):
    message = _sms_message(session, clock, sid="SM2")
    dispatcher.handle_twilio_status({"MessageSid": "SM2", "MessageStatus": "undelivered"}, None)
    assert session.get(Interaction, message.interaction_id).status == "FAILED"


def test_sms_status_for_unknown_message_is_audited(dispatcher, session):
    result = dispatcher.handle_twilio_status({"MessageSid": "SM404", "MessageStatus": "delivered"}, None)
    assert result.success and result.interaction_id is None
    audit = session.scalars(select(AuditLog).where(AuditLog.action == "webhook.twilio.status")).one()
    assert audit.entity_id == "unknown"


def test_sms_status_with_wrong_token_is_rejected(dispatcher):
    with pytest.raises(AuthenticationError):
        dispatcher.handle_twilio_status({"MessageSid": "SM1", "MessageStatus": "sent"}, "wrong")
