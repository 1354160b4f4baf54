import datetime as dt

import pytest
from sqlalchemy import func, select

from contact_center.interactions import store as store_module
from contact_center.interactions.store import InteractionKey, InteractionStore
from contact_center.models import CallDetail, Interaction, InteractionEvent


def _voice_key(conversation_id="conv-1", **overrides):
    values = dict(
        provider="ELEVENLABS",
        channel="CALL",
        direction="INBOUND",
        from_number="+5491112345678",
        to_number="+541140000000",
        provider_conversation_id=conversation_id,
    )
    values.update(overrides)
    return InteractionKey(**values)


def _count(session, model):
    return session.scalar(select(func.count()).select_from(model))


def test_upsert_creates_with_defaults(session, clock):
    store = InteractionStore(session, now=clock)
    interaction = store.upsert_interaction(_voice_key())
    assert interaction.status == "NEW"
    assert interaction.started_at is not None
    assert _count(session, Interaction) == 1


def test_upsert_merges_without_nulling_fields(session, clock):
    store = InteractionStore(session, now=clock)
    first = store.upsert_interaction(_voice_key(), status="IN_PROGRESS", intent="billing")
    second = store.upsert_interaction(_voice_key(), status="COMPLETED", intent=None, outcome="RESOLVED")

    assert first.id == second.id
    assert second.status == "COMPLETED"
    assert second.intent == "billing"
    assert second.outcome == "RESOLVED"
    assert _count(session, Interaction) == 1


def test_later_source_fills_unknown_parties(session, clock):
    store = InteractionStore(session, now=clock)
    store.upsert_interaction(_voice_key(from_number="unknown", to_number="unknown"))
    merged = store.upsert_interaction(_voice_key(from_number="+5491199999999", to_number="unknown"))
    assert merged.from_number == "+5491199999999"
    assert merged.to_number == "unknown"


@pytest.mark.parametrize("native", [True, False])
def test_later_source_keeps_known_parties(session, clock, monkeypatch, native):
    if not native:
        monkeypatch.setattr(store_module, "_NATIVE_UPSERT", {})
    store = InteractionStore(session, now=clock)
    store.upsert_interaction(_voice_key(to_number="unknown"))
    merged = store.upsert_interaction(
        _voice_key(from_number="system", to_number="+541140000000", direction="OUTBOUND")
    )
    assert merged.from_number == "+5491112345678"
    assert merged.to_number == "+541140000000"
    assert merged.direction == "INBOUND"


def test_key_without_conversation_id_uses_parties_and_channel(session, clock):
    store = InteractionStore(session, now=clock)
    key = InteractionKey(
        provider="TWILIO",
        channel="SMS",
        direction="OUTBOUND",
        from_number="system",
        to_number="+5491112345678",
    )
    first = store.upsert_interaction(key, status="IN_PROGRESS")
    second = store.upsert_interaction(key, status="COMPLETED")
    other_channel = store.upsert_interaction(
        InteractionKey(
            provider="TWILIO",
            channel="WHATSAPP",
            direction="OUTBOUND",
            from_number="system",
            to_number="+5491112345678",
        )
    )
    assert first.id == second.id
    assert other_channel.id != first.id
    assert _count(session, Interaction) == 2


def test_same_conversation_id_on_other_provider_is_distinct(session, clock):
    store = InteractionStore(session, now=clock)
    voice = store.upsert_interaction(_voice_key("shared"))
    whatsapp = store.upsert_interaction(
        _voice_key("shared", provider="BUILDERBOT", channel="WHATSAPP")
    )
    assert voice.id != whatsapp.id


def test_unknown_fields_are_rejected(session, clock):
    store = InteractionStore(session, now=clock)
    with pytest.raises(TypeError):
        store.upsert_interaction(_voice_key(), colour="red")


def test_call_detail_is_one_to_one_and_merged(session, clock):
    store = InteractionStore(session, now=clock)
    interaction = store.upsert_interaction(_voice_key())
    store.upsert_call_detail(interaction.id, summary="short", duration_seconds=30)
    detail = store.upsert_call_detail(interaction.id, transcript_text="Agent: hi", summary=None)

    assert detail.summary == "short"
    assert detail.duration_seconds == 30
    assert detail.transcript_text == "Agent: hi"
    assert _count(session, CallDetail) == 1


def test_update_interaction_requires_existing_row(session, clock):
    import uuid

    from contact_center.errors import NotFoundError

    store = InteractionStore(session, now=clock)
    with pytest.raises(NotFoundError):
        store.update_interaction(uuid.uuid4(), status="FAILED")


def test_record_event_treats_duplicate_key_as_replay(session, clock):
    store = InteractionStore(session, now=clock)
    interaction = store.upsert_interaction(_voice_key())
    first, created = store.record_event(
        interaction.id, type="call.event", provider="ELEVENLABS", payload={}, idempotency_key="k-1"
    )
    again, created_again = store.record_event(
        interaction.id, type="call.event", provider="ELEVENLABS", payload={}, idempotency_key="k-1"
    )
    assert created and not created_again
    assert again.id == first.id
    assert _count(session, InteractionEvent) == 1
    # The transaction stays usable after the swallowed constraint violation.
    store.upsert_interaction(_voice_key(), status="COMPLETED")


def test_savepoint_fallback_without_native_upsert(session, clock, monkeypatch):
    monkeypatch.setattr(store_module, "_NATIVE_UPSERT", {})
    store = InteractionStore(session, now=clock)

    first = store.upsert_interaction(_voice_key(), status="IN_PROGRESS")
    second = store.upsert_interaction(_voice_key(), outcome="RESOLVED")
    store.upsert_call_detail(first.id, summary="one")
    detail = store.upsert_call_detail(first.id, duration_seconds=12)

    assert first.id == second.id
    assert second.status == "IN_PROGRESS"
    assert second.outcome == "RESOLVED"
    assert detail.summary == "one" and detail.duration_seconds == 12
    assert _count(session, Interaction) == 1


def test_upsert_updates_timestamp(session, clock):
    store = InteractionStore(session, now=clock)
    created = store.upsert_interaction(_voice_key())
    first_update = created.updated_at
    clock.advance(minutes=5)
    merged = store.upsert_interaction(_voice_key(), status="COMPLETED")
    assert merged.updated_at.replace(tzinfo=None) > first_update.replace(tzinfo=None)
