"""Create interaction, OTP, audit and customer tables."""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "001_create_contact_center_tables"
down_revision = None
branch_labels = None
depends_on = None


_UUID = postgresql.UUID(as_uuid=True)
_JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    ]


def upgrade() -> None:
    """Create the contact-center schema with its reconciliation indexes."""

    op.create_table(
        "interactions",
        sa.Column("id", _UUID, primary_key=True, nullable=False),
        sa.Column("channel", sa.String(length=16), nullable=False),
        sa.Column("direction", sa.String(length=16), nullable=False),
        sa.Column("provider", sa.String(length=32), nullable=False),
        sa.Column("provider_conversation_id", sa.String(length=255), nullable=True),
        sa.Column("from_number", sa.String(length=64), nullable=False),
        sa.Column("to_number", sa.String(length=64), nullable=False),
        sa.Column(
            "status",
            sa.String(length=32),
            nullable=False,
            server_default=sa.text("'NEW'"),
        ),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("assigned_agent", sa.String(length=255), nullable=True),
        sa.Column("intent", sa.String(length=255), nullable=True),
        sa.Column("outcome", sa.String(length=32), nullable=True),
        sa.Column("customer_ref", sa.String(length=255), nullable=True),
        sa.Column("queue", sa.String(length=255), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "ix_interactions_provider_conversation_unique",
        "interactions",
        ["provider", "provider_conversation_id"],
        unique=True,
    )
    op.create_index(
        "ix_interactions_provider_parties_unique",
        "interactions",
        ["provider", "from_number", "to_number", "channel"],
        unique=True,
        postgresql_where=sa.text("provider_conversation_id IS NULL"),
    )
    op.create_index("ix_interactions_updated_at", "interactions", ["updated_at"])

    op.create_table(
        "interaction_events",
        sa.Column("id", _UUID, primary_key=True, nullable=False),
        sa.Column(
            "interaction_id",
            _UUID,
            sa.ForeignKey("interactions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("type", sa.String(length=64), nullable=False),
        sa.Column("provider", sa.String(length=32), nullable=False),
        sa.Column("provider_event_id", sa.String(length=255), nullable=True),
        sa.Column("idempotency_key", sa.String(length=255), nullable=True),
        sa.Column("payload", _JSON, nullable=False),
        sa.Column(
            "timestamp",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )
    op.create_index(
        "ix_interaction_events_idempotency_key_unique",
        "interaction_events",
        ["idempotency_key"],
        unique=True,
    )
    op.create_index(
        "ix_interaction_events_interaction_id", "interaction_events", ["interaction_id"]
    )

    op.create_table(
        "messages",
        sa.Column("id", _UUID, primary_key=True, nullable=False),
        sa.Column(
            "interaction_id",
            _UUID,
            sa.ForeignKey("interactions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("channel", sa.String(length=16), nullable=False),
        sa.Column("direction", sa.String(length=16), nullable=False),
        sa.Column("provider_message_id", sa.String(length=255), nullable=True),
        sa.Column("text", sa.Text(), nullable=True),
        sa.Column("media_url", sa.Text(), nullable=True),
        sa.Column("provider_status", sa.String(length=64), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )
    op.create_index("ix_messages_interaction_id", "messages", ["interaction_id"])
    op.create_index("ix_messages_provider_message_id", "messages", ["provider_message_id"])

    op.create_table(
        "call_details",
        sa.Column("id", _UUID, primary_key=True, nullable=False),
        sa.Column(
            "interaction_id",
            _UUID,
            sa.ForeignKey("interactions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("vendor_call_id", sa.String(length=255), nullable=True),
        sa.Column("recording_url", sa.Text(), nullable=True),
        sa.Column("transcript_text", sa.Text(), nullable=True),
        sa.Column("transcript_id", sa.String(length=255), nullable=True),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("duration_seconds", sa.Integer(), nullable=True),
        sa.Column("hangup_reason", sa.String(length=255), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "ix_call_details_interaction_id_unique",
        "call_details",
        ["interaction_id"],
        unique=True,
    )

    op.create_table(
        "otp_challenges",
        sa.Column("id", _UUID, primary_key=True, nullable=False),
        sa.Column("phone", sa.String(length=64), nullable=False),
        sa.Column("purpose", sa.String(length=32), nullable=False),
        sa.Column("otp_hash", sa.String(length=255), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("max_attempts", sa.Integer(), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column(
            "status",
            sa.String(length=16),
            nullable=False,
            server_default=sa.text("'PENDING'"),
        ),
        sa.Column("correlation_id", sa.String(length=255), nullable=False),
        sa.Column(
            "interaction_id",
            _UUID,
            sa.ForeignKey("interactions.id"),
            nullable=False,
        ),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "ix_otp_challenges_correlation_id_unique",
        "otp_challenges",
        ["correlation_id"],
        unique=True,
    )
    op.create_index(
        "ix_otp_challenges_phone_purpose_created",
        "otp_challenges",
        ["phone", "purpose", "created_at"],
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", _UUID, primary_key=True, nullable=False),
        sa.Column(
            "ts",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column("actor_type", sa.String(length=16), nullable=False),
        sa.Column("actor_id", sa.String(length=255), nullable=True),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.String(length=255), nullable=False),
        sa.Column("ip", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.String(length=512), nullable=True),
        sa.Column("metadata", _JSON, nullable=False),
    )
    op.create_index("ix_audit_logs_entity", "audit_logs", ["entity_type", "entity_id"])
    op.create_index("ix_audit_logs_ts", "audit_logs", ["ts"])

    op.create_table(
        "customers",
        sa.Column("id", _UUID, primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=64), nullable=False),
        sa.Column("normalized_phone", sa.String(length=64), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("document_number", sa.String(length=64), nullable=True),
        sa.Column(
            "status",
            sa.String(length=16),
            nullable=False,
            server_default=sa.text("'ACTIVE'"),
        ),
        sa.Column("created_by", sa.String(length=255), nullable=True),
        sa.Column("updated_by", sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_customers_normalized_phone_unique",
        "customers",
        ["normalized_phone"],
        unique=True,
    )

    op.create_table(
        "customer_tags",
        sa.Column("id", _UUID, primary_key=True, nullable=False),
        sa.Column(
            "customer_id",
            _UUID,
            sa.ForeignKey("customers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("tag", sa.String(length=64), nullable=False),
        sa.Column("color", sa.String(length=16), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )
    op.create_index(
        "ix_customer_tags_customer_tag_unique",
        "customer_tags",
        ["customer_id", "tag"],
        unique=True,
    )

    op.create_table(
        "customer_notes",
        sa.Column("id", _UUID, primary_key=True, nullable=False),
        sa.Column(
            "customer_id",
            _UUID,
            sa.ForeignKey("customers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(length=255), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_by", sa.String(length=255), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_customer_notes_customer_id", "customer_notes", ["customer_id"])


def downgrade() -> None:
    """Drop the contact-center schema."""

    for index, table in (
        ("ix_customer_notes_customer_id", "customer_notes"),
        ("ix_customer_tags_customer_tag_unique", "customer_tags"),
        ("ix_customers_normalized_phone_unique", "customers"),
        ("ix_audit_logs_ts", "audit_logs"),
        ("ix_audit_logs_entity", "audit_logs"),
        ("ix_otp_challenges_phone_purpose_created", "otp_challenges"),
        ("ix_otp_challenges_correlation_id_unique", "otp_challenges"),
        ("ix_call_details_interaction_id_unique", "call_details"),
        ("ix_messages_provider_message_id", "messages"),
        ("ix_messages_interaction_id", "messages"),
        ("ix_interaction_events_interaction_id", "interaction_events"),
        ("ix_interaction_events_idempotency_key_unique", "interaction_events"),
        ("ix_interactions_updated_at", "interactions"),
        ("ix_interactions_provider_parties_unique", "interactions"),
        ("ix_interactions_provider_conversation_unique", "interactions"),
    ):
        op.drop_index(index, table_name=table)
    for table in (
        "customer_notes",
        "customer_tags",
        "customers",
        "audit_logs",
        "otp_challenges",
        "call_details",
        "messages",
        "interaction_events",
        "interactions",
    ):
        op.drop_table(table)
