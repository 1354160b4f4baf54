"""Voice-AI (ElevenLabs) call payload normalizer.

Accepts the flat legacy webhook body, the post-call envelope
``{"type", "event_timestamp", "data": {...}}`` and the conversation detail
returned by the REST API, which the sync job feeds through the same code.
"""

from __future__ import annotations

import dataclasses
import datetime as dt
from collections.abc import Mapping
from typing import Any

from ..models.enums import Direction, InteractionStatus, Outcome
from .base import (
    UNKNOWN,
    PayloadNormalizer,
    as_int,
    as_text,
    first_present,
    map_enum,
    parse_timestamp,
    payload_hash,
)

_DYNAMIC = "conversation_initiation_client_data.dynamic_variables"

FIELD_KEYS: dict[str, tuple[str, ...]] = {
    "event_id": ("event_id", "id", "eventId"),
    "conversation_id": ("conversation_id", "conversationId", "conversation.id"),
    "call_id": ("call_id", "callId", "metadata.phone_call.call_sid"),
    "session_id": ("session_id", "sessionId"),
    "event_type": ("event_type", "type", "event"),
    "from_number": (
        "from",
        "caller",
        "phone_number",
        "phone",
        "metadata.phone_call.external_number",
        f"{_DYNAMIC}.system__caller_id",
        f"{_DYNAMIC}.system__called_number",
    ),
    "to_number": (
        "to",
        "callee",
        "destination",
        "metadata.phone_call.agent_number",
        "metadata.phone_call.internal_number",
    ),
    "direction": ("direction", "call_direction", "metadata.phone_call.direction"),
    "status": ("status", "call_status", "state"),
    "started_at": (
        "start_time_unix_secs",
        "metadata.start_time_unix_secs",
        "started_at",
        "start_time",
        "timestamp",
    ),
    "ended_at": ("end_time_unix_secs", "metadata.end_time_unix_secs", "ended_at", "end_time"),
    "agent_name": ("agent_name", "agentName", "agent.name"),
    "agent_id": ("agent_id", "agentId", "agent", "assigned_agent"),
    "intent": ("intent", "intention", "reason"),
    "outcome": ("outcome", "call_outcome"),
    "recording_url": ("recording_url", "recordingUrl", "recording.url"),
    "transcript": ("transcript",),
    "transcript_text": ("transcript_text", "transcription.text"),
    "transcript_id": ("transcript_id", "transcription.id"),
    # Dedicated analysis field first; legacy names after, in this order.
    "summary": (
        "analysis.transcript_summary",
        "summary",
        "summary_text",
        "ai_summary",
        "call_summary",
    ),
    "duration_seconds": (
        "call_duration_secs",
        "metadata.call_duration_secs",
        "duration_seconds",
        "duration",
    ),
    "hangup_reason": (
        "hangup_reason",
        "hangupReason",
        "metadata.termination_reason",
        "reason",
    ),
    "customer_ref": (
        f"{_DYNAMIC}.nombre_paciente",
        f"{_DYNAMIC}.nombre_contacto",
        f"{_DYNAMIC}.customer_name",
        f"{_DYNAMIC}.customer_ref",
        "customer_ref",
    ),
    "queue": (f"{_DYNAMIC}.queue", f"{_DYNAMIC}.cola", f"{_DYNAMIC}.department", "queue"),
}

STATUS_MAP: dict[str, str] = {
    "done": InteractionStatus.COMPLETED.value,
    "completed": InteractionStatus.COMPLETED.value,
    "ended": InteractionStatus.COMPLETED.value,
    "abandoned": InteractionStatus.ABANDONED.value,
    "failed": InteractionStatus.FAILED.value,
    "in_progress": InteractionStatus.IN_PROGRESS.value,
    "active": InteractionStatus.IN_PROGRESS.value,
    "ringing": InteractionStatus.IN_PROGRESS.value,
    "processing": InteractionStatus.IN_PROGRESS.value,
}

OUTCOME_MAP: dict[str, str] = {
    "resolved": Outcome.RESOLVED.value,
    "escalated": Outcome.ESCALATED.value,
    "ticket": Outcome.TICKETED.value,
    "ticketed": Outcome.TICKETED.value,
    "transferred": Outcome.TRANSFERRED.value,
}

#: Top-level keys that change between redeliveries of the same event.
VOLATILE_KEYS = frozenset({"event_timestamp"})

DEFAULT_EVENT_TYPE = "call.event"


@dataclasses.dataclass
class NormalizedCall:
    """Canonical fields extracted from a voice-AI payload."""

    event_id: str | None = None
    conversation_id: str | None = None
    call_id: str | None = None
    session_id: str | None = None
    event_type: str = DEFAULT_EVENT_TYPE
    from_number: str = UNKNOWN
    to_number: str = UNKNOWN
    direction: str = Direction.INBOUND.value
    status: str | None = None
    started_at: dt.datetime | None = None
    ended_at: dt.datetime | None = None
    assigned_agent: str | None = None
    intent: str | None = None
    outcome: str | None = None
    recording_url: str | None = None
    transcript_text: str | None = None
    transcript_id: str | None = None
    summary: str | None = None
    duration_seconds: int | None = None
    hangup_reason: str | None = None
    customer_ref: str | None = None
    queue: str | None = None

    @property
    def thread_id(self) -> str | None:
        """Vendor id that identifies one call, whichever id the payload carried."""

        return self.conversation_id or self.call_id or self.session_id

    def interaction_fields(self) -> dict[str, Any]:
        """Interaction columns this payload supplies (``None`` means absent)."""

        return {
            "status": self.status,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "assigned_agent": self.assigned_agent,
            "intent": self.intent,
            "outcome": self.outcome,
            "customer_ref": self.customer_ref,
            "queue": self.queue,
        }

    def call_detail_fields(self) -> dict[str, Any]:
        return {
            "vendor_call_id": self.call_id,
            "recording_url": self.recording_url,
            "transcript_text": self.transcript_text,
            "transcript_id": self.transcript_id,
            "summary": self.summary,
            "duration_seconds": self.duration_seconds,
            "hangup_reason": self.hangup_reason,
        }


def render_transcript(turns: list[Any]) -> str | None:
    """Render a list of transcript turns as labelled paragraphs."""

    lines = []
    for turn in turns:
        if not isinstance(turn, Mapping):
            continue
        text = as_text(turn.get("message") or turn.get("text"))
        if not text:
            continue
        label = "Agent" if turn.get("role") == "agent" else "Customer"
        lines.append(f"{label}: {text}")
    return "\n\n".join(lines) or None


def _sources(payload: Mapping[str, Any]) -> list[Any]:
    sources: list[Any] = [payload]
    data = payload.get("data")
    if isinstance(data, Mapping):
        sources.append(data)
    return sources


class ElevenLabsNormalizer(PayloadNormalizer):
    provider_name = "elevenlabs"

    def normalize(self, payload: Mapping[str, Any]) -> NormalizedCall:
        sources = _sources(payload if isinstance(payload, Mapping) else {})

        def pick(field: str, default: Any = None) -> Any:
            return first_present(sources, FIELD_KEYS[field], default)

        conversation_id = as_text(pick("conversation_id"))
        transcript = pick("transcript")
        if isinstance(transcript, list):
            transcript_text = render_transcript(transcript)
        else:
            transcript_text = as_text(transcript) or as_text(pick("transcript_text"))

        direction = (as_text(pick("direction")) or "").lower()

        return NormalizedCall(
            event_id=as_text(pick("event_id")),
            conversation_id=conversation_id,
            call_id=as_text(pick("call_id")) or conversation_id,
            session_id=as_text(pick("session_id")) or conversation_id,
            event_type=as_text(pick("event_type")) or DEFAULT_EVENT_TYPE,
            from_number=as_text(pick("from_number")) or UNKNOWN,
            to_number=as_text(pick("to_number")) or UNKNOWN,
            direction=(
                Direction.OUTBOUND.value if direction == "outbound" else Direction.INBOUND.value
            ),
            status=map_enum(pick("status"), STATUS_MAP),
            started_at=parse_timestamp(pick("started_at")),
            ended_at=parse_timestamp(pick("ended_at")),
            assigned_agent=as_text(pick("agent_name")) or as_text(pick("agent_id")),
            intent=as_text(pick("intent")),
            outcome=map_enum(pick("outcome"), OUTCOME_MAP),
            recording_url=as_text(pick("recording_url")),
            transcript_text=transcript_text,
            transcript_id=as_text(pick("transcript_id")),
            summary=as_text(pick("summary")),
            duration_seconds=as_int(pick("duration_seconds")),
            hangup_reason=as_text(pick("hangup_reason")),
            customer_ref=as_text(pick("customer_ref")),
            queue=as_text(pick("queue")),
        )

    def idempotency_key(self, payload: Mapping[str, Any]) -> str:
        event_id = as_text(first_present(_sources(payload), FIELD_KEYS["event_id"]))
        if event_id:
            return f"{self.provider_name}:{event_id}"
        return f"{self.provider_name}:{payload_hash(payload, exclude=VOLATILE_KEYS)}"


__all__ = ["ElevenLabsNormalizer", "NormalizedCall", "render_transcript"]
