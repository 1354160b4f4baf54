"""Inbound webhook routes for the voice, WhatsApp and SMS providers.

Vendors retry on non-2xx answers, so every failure other than authentication
is rolled back, logged and acknowledged with ``200 {"success": false}``.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any
from urllib.parse import parse_qsl

from fastapi import APIRouter, Header, HTTPException, Request, status
from starlette.concurrency import run_in_threadpool

from ..core.auth import request_origin
from ..core.services import Services, open_services
from ..errors import AuthenticationError

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

logger = logging.getLogger(__name__)


async def _read_payload(request: Request) -> dict[str, Any]:
    body = await request.body()
    if not body:
        return {}
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/x-www-form-urlencoded"):
        return dict(parse_qsl(body.decode("utf-8"), keep_blank_values=True))
    payload = json.loads(body.decode("utf-8"))
    return payload if isinstance(payload, dict) else {"data": payload}


def _dispatch(provider: str, handle: Callable[[Services], dict[str, Any]]) -> dict[str, Any]:
    services: Services | None = None
    try:
        services = open_services()
        body = handle(services)
        services.session.commit()
        return body
    except AuthenticationError as exc:
        if services is not None:
            services.session.rollback()
        logger.warning("Rejected %s webhook: %s", provider, exc.message)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=exc.message) from exc
    except Exception as exc:
        if services is not None:
            services.session.rollback()
        logger.exception("Failed to process %s webhook", provider)
        return {"success": False, "error": str(exc)}
    finally:
        if services is not None:
            services.session.close()


async def _payload_or_error(request: Request) -> dict[str, Any] | None:
    try:
        return await _read_payload(request)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.warning("Unparseable webhook body on %s: %s", request.url.path, exc)
        return None


@router.post("/elevenlabs/call")
async def elevenlabs_call(
    request: Request,
    x_webhook_token: str | None = Header(default=None),
) -> dict[str, Any]:
    payload = await _payload_or_error(request)
    if payload is None:
        return {"success": False, "error": "Invalid JSON payload"}
    origin = request_origin(request)
    return await run_in_threadpool(
        _dispatch,
        "elevenlabs",
        lambda svc: svc.webhooks.handle_elevenlabs(payload, x_webhook_token, origin).as_response(),
    )


@router.post("/elevenlabs/call-init")
async def elevenlabs_call_init(
    request: Request,
    x_webhook_token: str | None = Header(default=None),
) -> dict[str, Any]:
    payload = await _payload_or_error(request) or {}
    return await run_in_threadpool(
        _dispatch,
        "elevenlabs call-init",
        lambda svc: svc.webhooks.handle_call_init(payload, x_webhook_token),
    )


@router.post("/builderbot/whatsapp")
async def builderbot_whatsapp(
    request: Request,
    x_webhook_token: str | None = Header(default=None),
) -> dict[str, Any]:
    payload = await _payload_or_error(request)
    if payload is None:
        return {"success": False, "error": "Invalid JSON payload"}
    origin = request_origin(request)
    return await run_in_threadpool(
        _dispatch,
        "builderbot",
        lambda svc: svc.webhooks.handle_builderbot(payload, x_webhook_token, origin).as_response(),
    )


@router.post("/twilio/sms/status")
async def twilio_sms_status(
    request: Request,
    x_webhook_token: str | None = Header(default=None),
) -> dict[str, Any]:
    payload = await _payload_or_error(request)
    if payload is None:
        return {"success": False, "error": "Invalid payload"}
    origin = request_origin(request)
    return await run_in_threadpool(
        _dispatch,
        "twilio",
        lambda svc: svc.webhooks.handle_twilio_status(payload, x_webhook_token, origin).as_response(),
    )
