"""Customer directory service.

Customers are keyed by normalized phone so the call-init webhook and the
client profile can resolve a caller regardless of formatting.
"""

from __future__ import annotations

import datetime as dt
import logging
import uuid
from typing import Any

from sqlalchemy import case, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import Customer, CustomerNote, CustomerTag, Interaction
from ..models.enums import Channel, CustomerStatus, Outcome
from ..phone import mask_phone, normalize_phone
from . import schemas

logger = logging.getLogger(__name__)


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class CustomerService:
    def __init__(self, session: Session) -> None:
        self._session = session

    def _get(self, customer_id: uuid.UUID) -> Customer:
        customer = self._session.get(Customer, customer_id)
        if customer is None:
            raise NotFoundError("Customer not found")
        return customer

    def _normalized(self, phone: str) -> str:
        normalized = normalize_phone(phone)
        if not normalized:
            raise ValidationError("phone is required")
        return normalized

    def _ensure_phone_free(self, normalized: str, *, exclude: uuid.UUID | None = None) -> None:
        stmt = select(Customer.id).where(Customer.normalized_phone == normalized)
        if exclude is not None:
            stmt = stmt.where(Customer.id != exclude)
        if self._session.scalar(stmt) is not None:
            raise ConflictError("A customer with this phone already exists")

    def create(self, payload: schemas.CustomerCreate, *, actor: str | None = None) -> Customer:
        normalized = self._normalized(payload.phone)
        self._ensure_phone_free(normalized)
        customer = Customer(
            name=payload.name,
            phone=payload.phone,
            normalized_phone=normalized,
            email=payload.email,
            document_number=payload.document_number,
            status=CustomerStatus.ACTIVE.value,
            created_by=actor,
        )
        try:
            with self._session.begin_nested():
                self._session.add(customer)
                self._session.flush()
        except IntegrityError as exc:
            raise ConflictError("A customer with this phone already exists") from exc
        logger.info("Created customer %s (%s)", customer.id, mask_phone(normalized))
        return customer

    def get(self, customer_id: uuid.UUID) -> Customer:
        customer = self._session.scalars(
            select(Customer)
            .where(Customer.id == customer_id)
            .options(selectinload(Customer.tags), selectinload(Customer.notes))
        ).one_or_none()
        if customer is None:
            raise NotFoundError("Customer not found")
        return customer

    def find_by_phone(self, phone: str | None) -> Customer | None:
        """Return the active or blocked customer owning ``phone``, if any."""

        normalized = normalize_phone(phone)
        if not normalized:
            return None
        return self._session.scalars(
            select(Customer).where(
                Customer.normalized_phone == normalized,
                Customer.deleted_at.is_(None),
            )
        ).one_or_none()

    def stats(self, customer_id: uuid.UUID) -> tuple[Customer, dict[str, Any]]:
        """Interaction counts for the customer, matched on their normalized phone."""

        customer = self.get(customer_id)
        digits = customer.normalized_phone
        party = or_(Interaction.from_number.contains(digits), Interaction.to_number.contains(digits))

        def by(condition: Any) -> Any:
            return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)

        row = self._session.execute(
            select(
                func.count(Interaction.id),
                by(Interaction.channel == Channel.CALL.value),
                by(Interaction.channel == Channel.WHATSAPP.value),
                by(Interaction.channel == Channel.SMS.value),
                by(Interaction.outcome == Outcome.RESOLVED.value),
                func.max(Interaction.started_at),
            ).where(party)
        ).one()
        total, calls, whatsapp, sms, resolved, last = row
        return customer, {
            "total_interactions": total,
            "calls": calls,
            "whatsapp": whatsapp,
            "sms": sms,
            "resolved": resolved,
            "last_interaction": last,
        }

    def list(
        self, *, search: str | None = None, status: str | None = None, limit: int = 50, skip: int = 0
    ) -> tuple[list[Customer], int]:
        conditions = [Customer.deleted_at.is_(None)]
        if status:
            conditions.append(Customer.status == status.upper())
        if search:
            digits = normalize_phone(search)
            conditions.append(
                or_(
                    Customer.name.ilike(f"%{search}%"),
                    Customer.normalized_phone.contains(digits or search),
                    Customer.email.ilike(f"%{search}%"),
                )
            )
        total = self._session.scalar(select(func.count()).select_from(Customer).where(*conditions))
        rows = self._session.scalars(
            select(Customer)
            .where(*conditions)
            .options(selectinload(Customer.tags), selectinload(Customer.notes))
            .order_by(Customer.created_at.desc())
            .offset(skip)
            .limit(limit)
        ).all()
        return list(rows), total or 0

    def update(
        self, customer_id: uuid.UUID, payload: schemas.CustomerUpdate, *, actor: str | None = None
    ) -> Customer:
        customer = self._get(customer_id)
        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        if "phone" in changes:
            normalized = self._normalized(changes["phone"])
            self._ensure_phone_free(normalized, exclude=customer.id)
            customer.normalized_phone = normalized
        for name, value in changes.items():
            setattr(customer, name, value)
        customer.updated_by = actor
        self._session.flush()
        return customer

    def delete(self, customer_id: uuid.UUID, *, actor: str | None = None) -> Customer:
        """Soft delete: the row stays for history but is hidden from lookups."""

        customer = self._get(customer_id)
        customer.status = CustomerStatus.INACTIVE.value
        customer.deleted_at = _utcnow()
        customer.updated_by = actor
        self._session.flush()
        return customer

    def block(self, customer_id: uuid.UUID, *, actor: str | None = None) -> Customer:
        customer = self._get(customer_id)
        customer.status = CustomerStatus.BLOCKED.value
        customer.updated_by = actor
        self._session.flush()
        return customer

    def add_tag(self, customer_id: uuid.UUID, payload: schemas.TagCreate) -> CustomerTag:
        self._get(customer_id)
        tag = CustomerTag(customer_id=customer_id, tag=payload.tag, color=payload.color)
        try:
            with self._session.begin_nested():
                self._session.add(tag)
                self._session.flush()
        except IntegrityError as exc:
            raise ConflictError("This tag already exists for the customer") from exc
        return tag

    def remove_tag(self, customer_id: uuid.UUID, tag_id: uuid.UUID) -> None:
        tag = self._session.get(CustomerTag, tag_id)
        if tag is None or tag.customer_id != customer_id:
            raise NotFoundError("Tag not found")
        self._session.delete(tag)
        self._session.flush()

    def add_note(
        self, customer_id: uuid.UUID, payload: schemas.NoteCreate, *, actor: str | None = None
    ) -> CustomerNote:
        self._get(customer_id)
        note = CustomerNote(
            customer_id=customer_id,
            title=payload.title,
            content=payload.content,
            created_by=actor,
        )
        self._session.add(note)
        self._session.flush()
        return note

    def update_note(self, note_id: uuid.UUID, payload: schemas.NoteUpdate) -> CustomerNote:
        note = self._session.get(CustomerNote, note_id)
        if note is None:
            raise NotFoundError("Note not found")
        for name, value in payload.model_dump(exclude_unset=True, exclude_none=True).items():
            setattr(note, name, value)
        self._session.flush()
        return note

    def delete_note(self, note_id: uuid.UUID) -> None:
        note = self._session.get(CustomerNote, note_id)
        if note is None:
            raise NotFoundError("Note not found")
        self._session.delete(note)
        self._session.flush()


__all__ = ["CustomerService"]
