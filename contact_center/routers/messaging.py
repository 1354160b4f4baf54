"""Outbound SMS / WhatsApp API used by dashboard agents."""

import secrets
import time

from fastapi import APIRouter, Depends, Request, status

from ..core.auth import request_origin, require_api_token
from ..core.limits import OTP_CREATE_LIMIT, limiter
from ..core.services import service_context
from ..messaging import schemas, templates
from ..messaging.service import SendReceipt
from ..otp import schemas as otp_schemas

router = APIRouter(prefix="/api", tags=["messaging"])


def _response(receipt: SendReceipt) -> schemas.SendResponse:
    return schemas.SendResponse(
        interaction_id=receipt.interaction_id,
        message_id=receipt.message_id,
        provider_message_id=receipt.provider_message_id,
        status=receipt.status,
    )


@router.post("/sms/send", response_model=schemas.SendResponse)
def send_sms(
    request: Request,
    payload: schemas.SmsSendRequest,
    actor: str = Depends(require_api_token),
) -> schemas.SendResponse:
    with service_context() as svc:
        receipt = svc.messaging.send_sms(
            payload.phone, payload.message, origin=request_origin(request, actor)
        )
    return _response(receipt)


def _send_link(request: Request, phone: str, kind: str, actor: str) -> schemas.SendResponse:
    with service_context() as svc:
        receipt = svc.messaging.send_link_sms(phone, kind, origin=request_origin(request, actor))
    return _response(receipt)


@router.post("/sms/verification-link", response_model=schemas.SendResponse)
def send_verification_link(
    request: Request,
    payload: schemas.LinkSmsRequest,
    actor: str = Depends(require_api_token),
) -> schemas.SendResponse:
    return _send_link(request, payload.phone, templates.VERIFICATION, actor)


@router.post("/sms/onboarding", response_model=schemas.SendResponse)
def send_onboarding_link(
    request: Request,
    payload: schemas.LinkSmsRequest,
    actor: str = Depends(require_api_token),
) -> schemas.SendResponse:
    return _send_link(request, payload.phone, templates.ONBOARDING, actor)


@router.post("/sms/activate-card", response_model=schemas.SendResponse)
def send_card_activation(
    request: Request,
    payload: schemas.LinkSmsRequest,
    actor: str = Depends(require_api_token),
) -> schemas.SendResponse:
    return _send_link(request, payload.phone, templates.ACTIVATE_CARD, actor)


@router.post("/whatsapp/send", response_model=schemas.SendResponse)
def send_whatsapp(
    request: Request,
    payload: schemas.WhatsAppSendRequest,
    actor: str = Depends(require_api_token),
) -> schemas.SendResponse:
    with service_context() as svc:
        receipt = svc.messaging.send_whatsapp(
            payload.phone,
            payload.message,
            media_url=payload.media_url,
            origin=request_origin(request, actor),
        )
    return _response(receipt)


@router.post(
    "/sms/otp",
    response_model=otp_schemas.OtpCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(OTP_CREATE_LIMIT)
def send_sms_otp(
    request: Request,
    payload: otp_schemas.SmsOtpRequest,
    actor: str = Depends(require_api_token),
) -> otp_schemas.OtpCreateResponse:
    """Shortcut for agents: create an OTP with a generated correlation id."""
    correlation_id = f"otp-{int(time.time() * 1000)}-{secrets.token_hex(4)}"
    with service_context() as svc:
        created = svc.otp.create(
            payload.phone,
            payload.purpose,
            correlation_id,
            origin=request_origin(request, actor),
        )
    return otp_schemas.OtpCreateResponse(
        correlation_id=created.correlation_id,
        interaction_id=created.interaction_id,
        expires_at=created.expires_at,
    )
