"""
Security domain models.

AuthFactor             — an authentication factor owned by the identity provider
ProfileSecurityState   — security columns of the `profiles` row
EphemeralVerificationCode — a pending phone code (never persisted in the data store)
VerificationLogEntry   — append-only row of `sms_verification_logs`

AuthUser / AuthSession — identity provider user and (elevated) session tokens
EnrollmentMaterial     — what the user needs to add a TOTP factor to an app
MFAStatus              — outcome of a factor registry sync
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class FactorStatus(str, Enum):
    UNVERIFIED = "unverified"
    VERIFIED = "verified"


class VerificationStatus(str, Enum):
    SENT = "sent"
    VERIFIED = "verified"
    FAILED = "failed"


PHONE_VERIFICATION = "phone_verification"


class AuthFactor(BaseModel):
    """An enrolled factor as reported by the identity provider."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    factor_type: str = Field(default="totp", alias="type")
    status: FactorStatus = FactorStatus.UNVERIFIED
    friendly_name: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def is_verified(self) -> bool:
        return self.status == FactorStatus.VERIFIED


class ProfileSecurityState(BaseModel):
    """Security columns of a profile row.

    mfa_enabled caches "at least one verified factor exists"; mfa_verified is
    written in lockstep with it. Missing columns default to the unverified
    state.
    """

    mfa_enabled: bool = False
    mfa_verified: bool = False
    mfa_enrollment_date: Optional[datetime] = None
    phone_number: Optional[str] = None
    phone_verified: bool = False
    phone_verified_at: Optional[datetime] = None


class EphemeralVerificationCode(BaseModel):
    """A pending phone verification code, keyed by user id in the code store."""

    code: str
    phone: str
    expires_at: datetime
    attempts: int = Field(default=0, ge=0)

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


class VerificationLogEntry(BaseModel):
    user_id: str
    phone_number: str
    verification_type: str = PHONE_VERIFICATION
    status: VerificationStatus
    created_at: Optional[datetime] = None


class AuthUser(BaseModel):
    id: str
    email: Optional[str] = None


class AuthSession(BaseModel):
    """Tokens issued after a successful factor verification (AAL2 session)."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None


class EnrollmentMaterial(BaseModel):
    factor_id: str
    friendly_name: str
    secret: str
    uri: str
    qr_code: Optional[str] = None  # provider-rendered payload (SVG)
    qr_data_uri: Optional[str] = None  # locally rendered PNG


class MFAStatus(BaseModel):
    """Result of reconciling the profile flag with the provider's factor list.

    source is "provider" when the factor list was read, "profile" when the
    cached flag was all that was available.
    """

    enabled: bool
    factors: list[AuthFactor] = []
    source: str = "profile"

    @property
    def verified_factors(self) -> list[AuthFactor]:
        return [f for f in self.factors if f.is_verified]
