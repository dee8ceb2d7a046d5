"""IdentityProvider protocol — services depend on this, not the concrete implementation.

All calls act on behalf of the user whose access token is passed in. Transport
failures and provider-side server errors raise errors.UpstreamError;
verify_challenge returns None when the provider rejects the code.
"""

from typing import Optional, Protocol

from schemas.models.security import AuthFactor, AuthSession, AuthUser, EnrollmentMaterial


class IdentityProvider(Protocol):
    async def get_user(self, access_token: str) -> Optional[AuthUser]: ...

    async def list_factors(self, access_token: str) -> list[AuthFactor]: ...

    async def enroll_factor(
        self, access_token: str, factor_type: str, friendly_name: str
    ) -> EnrollmentMaterial: ...

    async def create_challenge(self, access_token: str, factor_id: str) -> str: ...

    async def verify_challenge(
        self, access_token: str, factor_id: str, challenge_id: str, code: str
    ) -> Optional[AuthSession]: ...

    async def unenroll_factor(self, access_token: str, factor_id: str) -> None: ...
