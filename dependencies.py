"""
FastAPI dependency providers.

All injectable dependencies are defined here as plain functions used with
FastAPI's Depends() system. Services and clients are built once in the app
lifespan and read back from app.state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from errors import AuthenticationError
from schemas.models.security import AuthUser
from services.challenge import ChallengeService
from services.enforcement import EnforcementGate
from services.enrollment import EnrollmentService
from services.factor_registry import FactorRegistry
from services.phone_verification import PhoneVerificationService


@dataclass
class UserContext:
    """The authenticated caller and the bearer token they presented."""

    user: AuthUser
    access_token: str

    @property
    def user_id(self) -> str:
        return self.user.id


def _bearer_token(request: Request) -> str:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Sessão não encontrada. Faça login novamente.")
    return token.strip()


async def get_current_user(request: Request) -> UserContext:
    """Resolve the bearer token to a user via the identity provider."""
    token = _bearer_token(request)
    user = await request.app.state.identity.get_user(token)
    if user is None:
        raise AuthenticationError("Sessão expirada. Faça login novamente.")
    return UserContext(user=user, access_token=token)


async def get_optional_user(request: Request) -> Optional[UserContext]:
    """Like get_current_user, but an anonymous or expired session yields None."""
    if not request.headers.get("Authorization"):
        return None
    try:
        return await get_current_user(request)
    except AuthenticationError:
        return None


def get_factor_registry(request: Request) -> FactorRegistry:
    return request.app.state.factor_registry


def get_enrollment_service(request: Request) -> EnrollmentService:
    return request.app.state.enrollment_service


def get_challenge_service(request: Request) -> ChallengeService:
    return request.app.state.challenge_service


def get_phone_service(request: Request) -> PhoneVerificationService:
    return request.app.state.phone_service


def get_enforcement_gate(request: Request) -> EnforcementGate:
    return request.app.state.enforcement_gate

