"""
Phone verification endpoints.

POST   /security/phone            — save a number (resets verification)
POST   /security/phone/send-code  — send a verification code
POST   /security/phone/verify     — check the code
DELETE /security/phone/pending    — discard the pending code
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from dependencies import UserContext, get_current_user, get_phone_service
from errors import error_for_result
from schemas.dto.requests.security import PhoneCodeRequest, PhoneRequest
from schemas.dto.responses.common import ErrorResponse
from schemas.dto.responses.security import FlowResponse
from services.phone_verification import PhoneVerificationService

router = APIRouter(
    prefix="/security/phone",
    tags=["phone"],
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
)


@router.post("", response_model=FlowResponse)
async def save_phone(
    body: PhoneRequest,
    ctx: UserContext = Depends(get_current_user),
    service: PhoneVerificationService = Depends(get_phone_service),
) -> FlowResponse:
    result = await service.save_phone(ctx.user_id, body.phone)
    if not result.ok:
        raise error_for_result(result)
    return FlowResponse.from_result(result)


@router.post("/send-code", response_model=FlowResponse)
async def send_code(
    body: PhoneRequest,
    ctx: UserContext = Depends(get_current_user),
    service: PhoneVerificationService = Depends(get_phone_service),
) -> FlowResponse:
    result = await service.send_code(ctx.user_id, body.phone)
    if not result.ok:
        raise error_for_result(result)
    return FlowResponse.from_result(result)


@router.post("/verify", response_model=FlowResponse)
async def verify_code(
    body: PhoneCodeRequest,
    ctx: UserContext = Depends(get_current_user),
    service: PhoneVerificationService = Depends(get_phone_service),
) -> FlowResponse:
    result = await service.verify_code(ctx.user_id, body.code)
    if not result.ok:
        raise error_for_result(result)
    return FlowResponse.from_result(result)


@router.delete("/pending", response_model=FlowResponse)
async def cancel_verification(
    ctx: UserContext = Depends(get_current_user),
    service: PhoneVerificationService = Depends(get_phone_service),
) -> FlowResponse:
    result = await service.cancel(ctx.user_id)
    return FlowResponse.from_result(result)
