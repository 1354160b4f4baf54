"""Dashboard query API over interactions."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request

from ..config import get_settings
from ..core.auth import is_admin, require_api_token
from ..core.services import service_context
from ..interactions import schemas

router = APIRouter(
    prefix="/api/interactions",
    tags=["interactions"],
    dependencies=[Depends(require_api_token)],
)


def _mask_pii(request: Request, include_pii: bool) -> bool:
    if not get_settings().pii_masking_enabled:
        return False
    return not (include_pii and is_admin(request))


@router.get("", response_model=schemas.InteractionList)
def list_interactions(
    request: Request,
    channel: str | None = None,
    direction: str | None = None,
    status: str | None = None,
    provider: str | None = None,
    from_number: str | None = Query(default=None, alias="from"),
    to_number: str | None = Query(default=None, alias="to"),
    agent: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    limit: int = Query(default=100, ge=1, le=500),
    skip: int = Query(default=0, ge=0),
    include_pii: bool = False,
) -> schemas.InteractionList:
    filters = schemas.InteractionFilters(
        channel=channel,
        direction=direction,
        status=status,
        provider=provider,
        from_number=from_number,
        to_number=to_number,
        agent=agent,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        skip=skip,
    )
    with service_context() as svc:
        return svc.interactions(mask_pii=_mask_pii(request, include_pii)).list_interactions(filters)


@router.get("/client/{phone}", response_model=schemas.ClientProfile)
def client_profile(phone: str, request: Request, include_pii: bool = False) -> schemas.ClientProfile:
    with service_context() as svc:
        return svc.interactions(mask_pii=_mask_pii(request, include_pii)).client_profile(phone)


@router.get("/{interaction_id}", response_model=schemas.InteractionOut)
def get_interaction(
    interaction_id: UUID, request: Request, include_pii: bool = False
) -> schemas.InteractionOut:
    with service_context() as svc:
        return svc.interactions(mask_pii=_mask_pii(request, include_pii)).get_interaction(
            interaction_id
        )


@router.post("/{interaction_id}/refresh-call-details", response_model=schemas.InteractionOut)
def refresh_call_details(
    interaction_id: UUID, request: Request, include_pii: bool = False
) -> schemas.InteractionOut:
    with service_context() as svc:
        return svc.interactions(mask_pii=_mask_pii(request, include_pii)).refresh_call_details(
            interaction_id
        )
