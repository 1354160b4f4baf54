"""Reconciliation layer for the Interaction aggregate.

Every webhook, sync and OTP write goes through :meth:`InteractionStore.upsert_interaction`,
which resolves the natural key and performs one atomic
``INSERT ... ON CONFLICT DO UPDATE``. Only the fields a caller supplies are
written on conflict, so a later source never nulls out what an earlier one
set. Dialects without native upsert insert inside a SAVEPOINT and retry once
as an update when the unique index reports a race.
"""

from __future__ import annotations

import dataclasses
import datetime as dt
import logging
import uuid
from collections.abc import Callable, Iterable
from typing import Any

from sqlalchemy import Table, case, insert, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import NotFoundError, StoreConflictError
from ..models import CallDetail, Interaction, InteractionEvent, Message
from ..models.enums import InteractionStatus, enum_value
from ..normalizers.base import UNKNOWN

logger = logging.getLogger(__name__)

_NATIVE_UPSERT: dict[str, Callable[[Table], Any]] = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}

INTERACTION_FIELDS = frozenset(
    {
        "status",
        "started_at",
        "ended_at",
        "assigned_agent",
        "intent",
        "outcome",
        "customer_ref",
        "queue",
    }
)

CALL_DETAIL_FIELDS = frozenset(
    {
        "vendor_call_id",
        "recording_url",
        "transcript_text",
        "transcript_id",
        "summary",
        "duration_seconds",
        "hangup_reason",
    }
)


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


@dataclasses.dataclass(frozen=True)
class InteractionKey:
    """Natural key plus the insert-only attributes of an interaction."""

    provider: str
    channel: str
    direction: str
    from_number: str = UNKNOWN
    to_number: str = UNKNOWN
    provider_conversation_id: str | None = None


def _supplied(fields: dict[str, Any], allowed: Iterable[str]) -> dict[str, Any]:
    """Drop absent (``None``) fields and reject unknown column names."""

    unknown = set(fields) - set(allowed)
    if unknown:
        raise TypeError(f"Unknown fields: {', '.join(sorted(unknown))}")
    return {k: enum_value(v) for k, v in fields.items() if v is not None}


class InteractionStore:
    """Create/merge operations over interactions and their sub-entities."""

    def __init__(self, session: Session, *, now: Callable[[], dt.datetime] = _utcnow) -> None:
        self._session = session
        self._now = now

    @property
    def session(self) -> Session:
        return self._session

    def now(self) -> dt.datetime:
        return self._now()

    # -- upserts -----------------------------------------------------------------

    def _upsert(
        self,
        table: Table,
        *,
        insert_values: dict[str, Any],
        update_values: dict[str, Any],
        index_elements: list[str],
        key_clauses: list[Any],
        index_where: Any = None,
    ) -> None:
        self._session.flush()
        dialect = self._session.get_bind().dialect.name
        native = _NATIVE_UPSERT.get(dialect)
        if native is not None:
            stmt = native(table).values(**insert_values)
            stmt = stmt.on_conflict_do_update(
                index_elements=index_elements,
                index_where=index_where,
                set_=update_values,
            )
            self._session.execute(stmt)
            return

        try:
            with self._session.begin_nested():
                self._session.execute(insert(table).values(**insert_values))
        except IntegrityError:
            logger.info("Concurrent insert on %s; retrying as update", table.name)
            result = self._session.execute(
                update(table).where(*key_clauses).values(**update_values)
            )
            if not result.rowcount:
                raise StoreConflictError(f"Could not reconcile {table.name} row")

    def upsert_interaction(self, key: InteractionKey, **fields: Any) -> Interaction:
        """Create the interaction for ``key`` or merge ``fields`` into it.

        ``None`` values are treated as absent and never overwrite stored data.
        New rows default to status ``NEW`` and ``started_at`` now.
        """

        supplied = _supplied(fields, INTERACTION_FIELDS)
        now = self._now()
        table = Interaction.__table__
        columns = table.c

        insert_values: dict[str, Any] = {
            "id": uuid.uuid4(),
            "provider": enum_value(key.provider),
            "channel": enum_value(key.channel),
            "direction": enum_value(key.direction),
            "provider_conversation_id": key.provider_conversation_id,
            "from_number": key.from_number or UNKNOWN,
            "to_number": key.to_number or UNKNOWN,
            "status": InteractionStatus.NEW.value,
            "started_at": now,
            "created_at": now,
            "updated_at": now,
            **supplied,
        }
        update_values: dict[str, Any] = {**supplied, "updated_at": now}

        if key.provider_conversation_id:
            # Parties are not part of this key; a later source only fills in unknown ones.
            for party in ("from_number", "to_number"):
                value = getattr(key, party)
                if value and value != UNKNOWN:
                    column = columns[party]
                    update_values[party] = case((column == UNKNOWN, value), else_=column)
            key_clauses = [
                columns.provider == insert_values["provider"],
                columns.provider_conversation_id == key.provider_conversation_id,
            ]
            self._upsert(
                table,
                insert_values=insert_values,
                update_values=update_values,
                index_elements=["provider", "provider_conversation_id"],
                key_clauses=key_clauses,
            )
        else:
            key_clauses = [
                columns.provider == insert_values["provider"],
                columns.from_number == insert_values["from_number"],
                columns.to_number == insert_values["to_number"],
                columns.channel == insert_values["channel"],
                columns.provider_conversation_id.is_(None),
            ]
            self._upsert(
                table,
                insert_values=insert_values,
                update_values=update_values,
                index_elements=["provider", "from_number", "to_number", "channel"],
                index_where=columns.provider_conversation_id.is_(None),
                key_clauses=key_clauses,
            )

        interaction = self._session.scalars(
            select(Interaction)
            .where(*key_clauses)
            .execution_options(populate_existing=True)
        ).one_or_none()
        if interaction is None:
            raise StoreConflictError("Interaction vanished after upsert")
        return interaction

    def upsert_call_detail(self, interaction_id: uuid.UUID, **fields: Any) -> CallDetail:
        """Create or merge the call detail of ``interaction_id``."""

        supplied = _supplied(fields, CALL_DETAIL_FIELDS)
        now = self._now()
        table = CallDetail.__table__
        key_clauses = [table.c.interaction_id == interaction_id]
        self._upsert(
            table,
            insert_values={
                "id": uuid.uuid4(),
                "interaction_id": interaction_id,
                "created_at": now,
                "updated_at": now,
                **supplied,
            },
            update_values={**supplied, "updated_at": now},
            index_elements=["interaction_id"],
            key_clauses=key_clauses,
        )
        detail = self._session.scalars(
            select(CallDetail)
            .where(*key_clauses)
            .execution_options(populate_existing=True)
        ).one_or_none()
        if detail is None:
            raise StoreConflictError("Call detail vanished after upsert")
        return detail

    def update_interaction(self, interaction_id: uuid.UUID, **fields: Any) -> Interaction:
        """Merge ``fields`` into an interaction addressed by id."""

        supplied = _supplied(fields, INTERACTION_FIELDS)
        interaction = self.get_interaction(interaction_id)
        for name, value in supplied.items():
            setattr(interaction, name, value)
        interaction.updated_at = self._now()
        self._session.flush()
        return interaction

    # -- inserts -----------------------------------------------------------------

    def create_message(self, interaction_id: uuid.UUID, **fields: Any) -> Message:
        message = Message(interaction_id=interaction_id, created_at=self._now())
        for name, value in fields.items():
            setattr(message, name, enum_value(value))
        self._session.add(message)
        self._session.flush()
        return message

    def create_event(
        self,
        interaction_id: uuid.UUID,
        *,
        type: str,
        provider: str,
        payload: dict[str, Any],
        provider_event_id: str | None = None,
        idempotency_key: str | None = None,
    ) -> InteractionEvent:
        event = InteractionEvent(
            interaction_id=interaction_id,
            type=type,
            provider=enum_value(provider),
            provider_event_id=provider_event_id,
            idempotency_key=idempotency_key,
            payload=payload,
            timestamp=self._now(),
        )
        self._session.add(event)
        self._session.flush()
        return event

    def record_event(self, interaction_id: uuid.UUID, **kwargs: Any) -> tuple[InteractionEvent, bool]:
        """Insert an event, treating an idempotency-key collision as a replay.

        Returns the stored event and whether this call created it.
        """

        key = kwargs.get("idempotency_key")
        try:
            with self._session.begin_nested():
                return self.create_event(interaction_id, **kwargs), True
        except IntegrityError:
            if key is None:
                raise
            existing = self.find_event_by_idempotency_key(key)
            if existing is None:
                raise
            logger.info("Event %s already recorded concurrently", key)
            return existing, False

    # -- lookups -----------------------------------------------------------------

    def get_interaction(self, interaction_id: uuid.UUID) -> Interaction:
        interaction = self._session.get(Interaction, interaction_id)
        if interaction is None:
            raise NotFoundError(f"Interaction {interaction_id} not found")
        return interaction

    def find_interaction_by_conversation(
        self, provider: str, provider_conversation_id: str
    ) -> Interaction | None:
        return self._session.scalars(
            select(Interaction).where(
                Interaction.provider == enum_value(provider),
                Interaction.provider_conversation_id == provider_conversation_id,
            )
        ).one_or_none()

    def find_event_by_idempotency_key(self, key: str) -> InteractionEvent | None:
        return self._session.scalars(
            select(InteractionEvent).where(InteractionEvent.idempotency_key == key)
        ).one_or_none()

    def find_message_by_provider_id(self, provider_message_id: str) -> Message | None:
        return self._session.scalars(
            select(Message)
            .where(Message.provider_message_id == provider_message_id)
            .order_by(Message.created_at.desc())
            .limit(1)
        ).first()


__all__ = [
    "CALL_DETAIL_FIELDS",
    "INTERACTION_FIELDS",
    "InteractionKey",
    "InteractionStore",
]
