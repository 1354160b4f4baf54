"""Customer directory API."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from ..core.auth import require_api_token
from ..core.services import service_context
from ..customers import schemas
from ..errors import NotFoundError

router = APIRouter(prefix="/api/customers", tags=["customers"])


@router.get("", response_model=schemas.CustomerList)
def list_customers(
    search: str | None = None,
    status_filter: str | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=500),
    skip: int = Query(default=0, ge=0),
    actor: str = Depends(require_api_token),
) -> schemas.CustomerList:
    with service_context() as svc:
        rows, total = svc.customers.list(search=search, status=status_filter, limit=limit, skip=skip)
        return schemas.CustomerList(
            items=[schemas.CustomerOut.model_validate(row) for row in rows], total=total
        )


@router.post("", response_model=schemas.CustomerOut, status_code=status.HTTP_201_CREATED)
def create_customer(
    payload: schemas.CustomerCreate, actor: str = Depends(require_api_token)
) -> schemas.CustomerOut:
    with service_context() as svc:
        customer = svc.customers.create(payload, actor=actor)
        return schemas.CustomerOut.model_validate(customer)


@router.get("/phone/{phone}", response_model=schemas.CustomerOut)
def get_customer_by_phone(phone: str, actor: str = Depends(require_api_token)) -> schemas.CustomerOut:
    with service_context() as svc:
        customer = svc.customers.find_by_phone(phone)
        if customer is None:
            raise NotFoundError("Customer not found")
        return schemas.CustomerOut.model_validate(svc.customers.get(customer.id))


@router.get("/{customer_id}", response_model=schemas.CustomerOut)
def get_customer(customer_id: UUID, actor: str = Depends(require_api_token)) -> schemas.CustomerOut:
    with service_context() as svc:
        return schemas.CustomerOut.model_validate(svc.customers.get(customer_id))


@router.get("/{customer_id}/stats", response_model=schemas.CustomerStatsOut)
def get_customer_stats(
    customer_id: UUID, actor: str = Depends(require_api_token)
) -> schemas.CustomerStatsOut:
    with service_context() as svc:
        customer, stats = svc.customers.stats(customer_id)
        return schemas.CustomerStatsOut(
            customer=schemas.CustomerOut.model_validate(customer),
            stats=schemas.CustomerStats(**stats),
        )


@router.patch("/{customer_id}", response_model=schemas.CustomerOut)
def update_customer(
    customer_id: UUID,
    payload: schemas.CustomerUpdate,
    actor: str = Depends(require_api_token),
) -> schemas.CustomerOut:
    with service_context() as svc:
        svc.customers.update(customer_id, payload, actor=actor)
        return schemas.CustomerOut.model_validate(svc.customers.get(customer_id))


@router.delete("/{customer_id}", response_model=schemas.CustomerOut)
def delete_customer(customer_id: UUID, actor: str = Depends(require_api_token)) -> schemas.CustomerOut:
    with service_context() as svc:
        svc.customers.delete(customer_id, actor=actor)
        return schemas.CustomerOut.model_validate(svc.customers.get(customer_id))


@router.post("/{customer_id}/block", response_model=schemas.CustomerOut)
def block_customer(customer_id: UUID, actor: str = Depends(require_api_token)) -> schemas.CustomerOut:
    with service_context() as svc:
        svc.customers.block(customer_id, actor=actor)
        return schemas.CustomerOut.model_validate(svc.customers.get(customer_id))


@router.post(
    "/{customer_id}/tags",
    response_model=schemas.CustomerTagOut,
    status_code=status.HTTP_201_CREATED,
)
def add_tag(
    customer_id: UUID, payload: schemas.TagCreate, actor: str = Depends(require_api_token)
) -> schemas.CustomerTagOut:
    with service_context() as svc:
        return schemas.CustomerTagOut.model_validate(svc.customers.add_tag(customer_id, payload))


@router.delete("/{customer_id}/tags/{tag_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_tag(customer_id: UUID, tag_id: UUID, actor: str = Depends(require_api_token)) -> Response:
    with service_context() as svc:
        svc.customers.remove_tag(customer_id, tag_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{customer_id}/notes",
    response_model=schemas.CustomerNoteOut,
    status_code=status.HTTP_201_CREATED,
)
def add_note(
    customer_id: UUID, payload: schemas.NoteCreate, actor: str = Depends(require_api_token)
) -> schemas.CustomerNoteOut:
    with service_context() as svc:
        return schemas.CustomerNoteOut.model_validate(
            svc.customers.add_note(customer_id, payload, actor=actor)
        )


@router.patch("/notes/{note_id}", response_model=schemas.CustomerNoteOut)
def update_note(
    note_id: UUID, payload: schemas.NoteUpdate, actor: str = Depends(require_api_token)
) -> schemas.CustomerNoteOut:
    with service_context() as svc:
        return schemas.CustomerNoteOut.model_validate(svc.customers.update_note(note_id, payload))


@router.delete("/notes/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_note(note_id: UUID, actor: str = Depends(require_api_token)) -> Response:
    with service_context() as svc:
        svc.customers.delete_note(note_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
