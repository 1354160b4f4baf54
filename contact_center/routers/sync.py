"""Manual trigger for the voice provider reconciliation."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from ..core.auth import require_api_token
from ..core import services
from ..errors import ContactCenterError

router = APIRouter(
    prefix="/api/sync",
    tags=["sync"],
    dependencies=[Depends(require_api_token)],
)


@router.post("/full")
def sync_full(limit: int | None = Query(default=None, ge=1, le=5000)) -> dict[str, int]:
    """Sync every conversation of the full window; blocks until done."""
    try:
        report = services.get_sync_service().sync_full(limit)
    except ContactCenterError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    return report.as_dict()
