"""Customer directory used for caller lookup and client profiles."""

from __future__ import annotations

import datetime as dt
import uuid
from typing import List, Optional

from sqlalchemy import DateTime, ForeignKey, Index, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from . import Base
from .interaction import _utcnow


class Customer(Base):
    """A known contact, keyed by normalized phone number.

    Attributes:
        phone: Phone as supplied by the operator.
        normalized_phone: Digits-only form used for lookups and uniqueness.
        status: ``ACTIVE``, ``INACTIVE`` (soft deleted) or ``BLOCKED``.
    """

    __tablename__ = "customers"
    __table_args__ = (
        Index("ix_customers_normalized_phone_unique", "normalized_phone", unique=True),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(length=255), nullable=False)
    phone: Mapped[str] = mapped_column(String(length=64), nullable=False)
    normalized_phone: Mapped[str] = mapped_column(String(length=64), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(length=320))
    document_number: Mapped[Optional[str]] = mapped_column(String(length=64))
    status: Mapped[str] = mapped_column(String(length=16), nullable=False, default="ACTIVE")
    created_by: Mapped[Optional[str]] = mapped_column(String(length=255))
    updated_by: Mapped[Optional[str]] = mapped_column(String(length=255))
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )
    deleted_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime(timezone=True))

    tags: Mapped[List["CustomerTag"]] = relationship(
        back_populates="customer", cascade="all, delete-orphan", passive_deletes=True
    )
    notes: Mapped[List["CustomerNote"]] = relationship(
        back_populates="customer",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="CustomerNote.created_at.desc()",
    )


class CustomerTag(Base):
    __tablename__ = "customer_tags"
    __table_args__ = (
        Index("ix_customer_tags_customer_tag_unique", "customer_id", "tag", unique=True),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    customer_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("customers.id", ondelete="CASCADE"), nullable=False
    )
    tag: Mapped[str] = mapped_column(String(length=64), nullable=False)
    color: Mapped[Optional[str]] = mapped_column(String(length=16))
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    customer: Mapped[Customer] = relationship(back_populates="tags")


class CustomerNote(Base):
    __tablename__ = "customer_notes"
    __table_args__ = (Index("ix_customer_notes_customer_id", "customer_id"),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    customer_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("customers.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[Optional[str]] = mapped_column(String(length=255))
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_by: Mapped[Optional[str]] = mapped_column(String(length=255))
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    customer: Mapped[Customer] = relationship(back_populates="notes")
