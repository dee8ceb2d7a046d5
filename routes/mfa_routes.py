"""
TOTP multi-factor endpoints.

GET    /security/mfa/status                — factor registry sync
POST   /security/mfa/enroll                — start enrollment (QR + secret)
POST   /security/mfa/verify                — confirm enrollment
POST   /security/mfa/challenge             — start a challenge
POST   /security/mfa/challenge/verify      — answer a challenge
POST   /security/mfa/disable               — step-up + remove every factor
DELETE /security/mfa/factors/unverified    — drop abandoned enrollments
POST   /security/mfa/backup-codes          — (re)generate backup codes
POST   /security/mfa/backup-codes/verify   — consume a backup code

Failed flows are raised as AppErrors built from the flow's notice.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from dependencies import (
    UserContext,
    get_challenge_service,
    get_current_user,
    get_enrollment_service,
    get_factor_registry,
)
from errors import error_for_result
from schemas.dto.requests.security import (
    BackupCodeVerifyRequest,
    ChallengeRequest,
    ChallengeVerifyRequest,
    DisableMFARequest,
    EnrollVerifyRequest,
)
from schemas.dto.responses.common import ErrorResponse
from schemas.dto.responses.security import (
    BackupCodesResponse,
    ChallengeResponse,
    DisableMFAResponse,
    EnrollResponse,
    FlowResponse,
    MFAStatusResponse,
    SessionFlowResponse,
    SessionResponse,
)
from services.challenge import ChallengeService
from services.enrollment import EnrollmentService
from services.factor_registry import FactorRegistry

router = APIRouter(
    prefix="/security/mfa",
    tags=["mfa"],
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)


@router.get("/status", response_model=MFAStatusResponse)
async def mfa_status(
    ctx: UserContext = Depends(get_current_user),
    registry: FactorRegistry = Depends(get_factor_registry),
) -> MFAStatusResponse:
    status = await registry.check_status(ctx.user_id, ctx.access_token)
    return MFAStatusResponse.from_status(status)


@router.post("/enroll", response_model=EnrollResponse)
async def enroll(
    ctx: UserContext = Depends(get_current_user),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> EnrollResponse:
    result = await service.enroll(ctx.user_id, ctx.access_token)
    if not result.ok:
        raise error_for_result(result)
    return EnrollResponse.from_result(result)


@router.post("/verify", response_model=SessionFlowResponse)
async def verify_enrollment(
    body: EnrollVerifyRequest,
    ctx: UserContext = Depends(get_current_user),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> SessionFlowResponse:
    result = await service.verify(
        ctx.user_id, ctx.access_token, body.factor_id, body.code, body.challenge_id
    )
    if not result.ok:
        raise error_for_result(result)
    return SessionFlowResponse(
        notice=result.notice, session=SessionResponse.from_session(result.value)
    )


@router.post("/challenge", response_model=ChallengeResponse)
async def start_challenge(
    body: ChallengeRequest,
    ctx: UserContext = Depends(get_current_user),
    service: ChallengeService = Depends(get_challenge_service),
) -> ChallengeResponse:
    result = await service.start_challenge(ctx.access_token, body.factor_id)
    if not result.ok:
        raise error_for_result(result)
    return ChallengeResponse(challenge_id=result.value, notice=result.notice)


@router.post("/challenge/verify", response_model=SessionFlowResponse)
async def verify_challenge(
    body: ChallengeVerifyRequest,
    ctx: UserContext = Depends(get_current_user),
    service: ChallengeService = Depends(get_challenge_service),
) -> SessionFlowResponse:
    result = await service.verify_challenge(
        ctx.user_id, ctx.access_token, body.factor_id, body.challenge_id, body.code
    )
    if not result.ok:
        raise error_for_result(result)
    return SessionFlowResponse(
        notice=result.notice, session=SessionResponse.from_session(result.value)
    )


@router.post("/disable", response_model=DisableMFAResponse)
async def disable_mfa(
    body: DisableMFARequest,
    ctx: UserContext = Depends(get_current_user),
    service: ChallengeService = Depends(get_challenge_service),
) -> DisableMFAResponse:
    result = await service.disable_mfa(
        ctx.user_id, ctx.access_token, body.code, request_id=body.request_id
    )
    if not result.ok:
        raise error_for_result(result)
    data = result.data or {}
    return DisableMFAResponse(
        notice=result.notice,
        request_id=data.get("request_id"),
        factors_removed=data.get("factors_removed", 0),
        session=SessionResponse.from_session(result.value),
    )


@router.delete("/factors/unverified", response_model=FlowResponse)
async def cleanup_unverified(
    ctx: UserContext = Depends(get_current_user),
    registry: FactorRegistry = Depends(get_factor_registry),
) -> FlowResponse:
    result = await registry.cleanup_unverified(ctx.user_id, ctx.access_token)
    if not result.ok:
        raise error_for_result(result)
    return FlowResponse.from_result(result)


@router.post("/backup-codes", response_model=BackupCodesResponse)
async def generate_backup_codes(
    ctx: UserContext = Depends(get_current_user),
    service: ChallengeService = Depends(get_challenge_service),
) -> BackupCodesResponse:
    result = await service.generate_backup_codes(ctx.access_token)
    if not result.ok:
        raise error_for_result(result)
    return BackupCodesResponse(codes=result.value, notice=result.notice)


@router.post("/backup-codes/verify", response_model=FlowResponse)
async def verify_backup_code(
    body: BackupCodeVerifyRequest,
    ctx: UserContext = Depends(get_current_user),
    service: ChallengeService = Depends(get_challenge_service),
) -> FlowResponse:
    result = await service.verify_backup_code(ctx.access_token, body.code)
    if not result.ok:
        raise error_for_result(result)
    return FlowResponse.from_result(result)
