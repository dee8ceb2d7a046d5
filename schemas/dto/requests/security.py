"""
Request DTOs for the security endpoints.

EnrollVerifyRequest      — POST /security/mfa/verify
ChallengeRequest         — POST /security/mfa/challenge
ChallengeVerifyRequest   — POST /security/mfa/challenge/verify
DisableMFARequest        — POST /security/mfa/disable
BackupCodeVerifyRequest  — POST /security/mfa/backup-codes/verify
PhoneRequest             — POST /security/phone, POST /security/phone/send-code
PhoneCodeRequest         — POST /security/phone/verify

Code formats are checked by the services so that a malformed code gets the
same Portuguese notice as a wrong one.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class EnrollVerifyRequest(BaseModel):
    """Request body for POST /security/mfa/verify.

    ``challenge_id`` is optional; a challenge is created when it is omitted.
    """

    model_config = ConfigDict(populate_by_name=True)

    factor_id: str = Field(min_length=1)
    code: str
    challenge_id: Optional[str] = None


class ChallengeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    factor_id: str = Field(min_length=1)


class ChallengeVerifyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    factor_id: str = Field(min_length=1)
    challenge_id: str = Field(min_length=1)
    code: str


class DisableMFARequest(BaseModel):
    """Request body for POST /security/mfa/disable.

    Pass ``request_id`` from a previous partial failure to resume it; the
    code is then ignored.
    """

    model_config = ConfigDict(populate_by_name=True)

    code: str = ""
    request_id: Optional[str] = None


class BackupCodeVerifyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    code: str = Field(min_length=1)


class PhoneRequest(BaseModel):
    """Phone number as typed by the user, e.g. ``(11) 98765-4321``."""

    model_config = ConfigDict(populate_by_name=True)

    phone: str


class PhoneCodeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    code: str
