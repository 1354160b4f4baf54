"""Read-through proxy to the voice provider's conversation API."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Response

from ..core.auth import require_api_token
from ..core import services
from ..errors import ContactCenterError

router = APIRouter(
    prefix="/api/voice",
    tags=["voice"],
    dependencies=[Depends(require_api_token)],
)


@router.get("/conversations/{conversation_id}")
def get_conversation(conversation_id: str) -> dict[str, Any]:
    try:
        return services.get_provider_clients().voice.get_conversation(conversation_id)
    except ContactCenterError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc


@router.get("/conversations/{conversation_id}/audio")
def get_conversation_audio(conversation_id: str) -> Response:
    try:
        audio = services.get_provider_clients().voice.get_conversation_audio(conversation_id)
    except ContactCenterError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    return Response(
        content=audio,
        media_type="audio/mpeg",
        headers={"Content-Disposition": f'inline; filename="{conversation_id}.mp3"'},
    )
