"""
Response DTOs for the security endpoints.

Every flow response carries the ``notice`` (title, description, variant)
the front end shows as a toast.

FactorResponse        — entry in MFAStatusResponse.factors
MFAStatusResponse     — GET /security/mfa/status
EnrollResponse        — POST /security/mfa/enroll
SessionResponse       — elevated session returned after a verified code
SessionFlowResponse   — POST /security/mfa/verify, /challenge/verify
ChallengeResponse     — POST /security/mfa/challenge
DisableMFAResponse    — POST /security/mfa/disable
BackupCodesResponse   — POST /security/mfa/backup-codes
FlowResponse          — phone endpoints, cleanup, backup code verification
GateResponse          — GET /security/gate
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from schemas.models.results import FlowResult, GateDecision, Notice
from schemas.models.security import AuthFactor, AuthSession, EnrollmentMaterial, MFAStatus


class FactorResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    factor_type: str
    status: str
    friendly_name: Optional[str] = None

    @classmethod
    def from_factor(cls, factor: AuthFactor) -> "FactorResponse":
        return cls(
            id=factor.id,
            factor_type=factor.factor_type,
            status=factor.status.value,
            friendly_name=factor.friendly_name,
        )


class MFAStatusResponse(BaseModel):
    """Response body for GET /security/mfa/status.

    ``source`` is ``provider`` when the factor list was read live and
    ``profile`` when only the cached flag was available.
    """

    model_config = ConfigDict(populate_by_name=True)

    enabled: bool
    source: str
    factors: list[FactorResponse] = []

    @classmethod
    def from_status(cls, status: MFAStatus) -> "MFAStatusResponse":
        return cls(
            enabled=status.enabled,
            source=status.source,
            factors=[FactorResponse.from_factor(f) for f in status.factors],
        )


class EnrollResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    factor_id: str
    friendly_name: str
    secret: str
    uri: str
    qr_code: Optional[str] = None
    qr_data_uri: Optional[str] = None
    notice: Notice

    @classmethod
    def from_result(cls, result: FlowResult[EnrollmentMaterial]) -> "EnrollResponse":
        return cls(**result.value.model_dump(), notice=result.notice)


class SessionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None

    @classmethod
    def from_session(cls, session: Optional[AuthSession]) -> Optional["SessionResponse"]:
        if session is None:
            return None
        return cls(**session.model_dump())


class SessionFlowResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    notice: Notice
    session: Optional[SessionResponse] = None


class ChallengeResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    challenge_id: str
    notice: Notice


class DisableMFAResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    notice: Notice
    request_id: Optional[str] = None
    factors_removed: int = 0
    session: Optional[SessionResponse] = None


class BackupCodesResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    codes: list[str]
    notice: Notice


class FlowResponse(BaseModel):
    """Generic {success, notice, data} shape."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    notice: Notice
    data: Optional[dict[str, Any]] = None

    @classmethod
    def from_result(cls, result: FlowResult) -> "FlowResponse":
        return cls(success=result.ok, notice=result.notice, data=result.data)


class GateResponse(GateDecision):
    """Response body for GET /security/gate."""

    model_config = ConfigDict(populate_by_name=True)
