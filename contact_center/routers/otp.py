"""OTP challenge API."""

from fastapi import APIRouter, Depends, Request, status

from ..core.auth import request_origin, require_api_token
from ..core.limits import OTP_CREATE_LIMIT, OTP_VERIFY_LIMIT, limiter
from ..core.services import service_context
from ..otp import schemas

router = APIRouter(prefix="/api/otp", tags=["otp"])


@router.post("", response_model=schemas.OtpCreateResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(OTP_CREATE_LIMIT)
def create_otp(
    request: Request,
    payload: schemas.OtpCreateRequest,
    actor: str = Depends(require_api_token),
) -> schemas.OtpCreateResponse:
    """Create a challenge and queue its SMS; answers before delivery."""
    with service_context() as svc:
        created = svc.otp.create(
            payload.phone,
            payload.purpose,
            payload.correlation_id,
            template_data=payload.template_data,
            origin=request_origin(request, actor),
        )
    return schemas.OtpCreateResponse(
        correlation_id=created.correlation_id,
        interaction_id=created.interaction_id,
        expires_at=created.expires_at,
    )


@router.post("/verify", response_model=schemas.OtpVerifyResponse)
@limiter.limit(OTP_VERIFY_LIMIT)
def verify_otp(
    request: Request,
    payload: schemas.OtpVerifyRequest,
    actor: str = Depends(require_api_token),
) -> schemas.OtpVerifyResponse:
    with service_context() as svc:
        verified = svc.otp.verify(
            payload.correlation_id,
            payload.otp,
            origin=request_origin(request, actor),
        )
    return schemas.OtpVerifyResponse(
        correlation_id=verified.correlation_id,
        interaction_id=verified.interaction_id,
        verified_at=verified.verified_at,
    )
