"""
Enforcement gate.

Decides, per request, what an authenticated user must complete before the
application is usable: phone verification first, then TOTP enrollment for
roles that require it.
"""

from __future__ import annotations

from typing import Optional

from errors import UpstreamError
from infrastructure.datastore.protocol import ProfileStore
from schemas.models.results import GateDecision
from services.factor_registry import FactorRegistry
from shared.logging import get_logger
from shared.validators import format_phone_for_display

log = get_logger(__name__)


class EnforcementGate:
    def __init__(
        self,
        profiles: ProfileStore,
        registry: FactorRegistry,
        mfa_required_roles: list[str],
        country_code: str = "55",
    ) -> None:
        self._profiles = profiles
        self._registry = registry
        self._mfa_roles = set(mfa_required_roles)
        self._country_code = country_code

    async def evaluate(
        self, user_id: Optional[str], access_token: Optional[str] = None
    ) -> GateDecision:
        if not user_id:
            return GateDecision.passthrough()

        try:
            profile = await self._profiles.get_profile(user_id)
        except UpstreamError as e:
            # unreadable profile counts as unverified
            log.warning("gate_profile_read_failed", user_id=user_id, error=e.message)
            profile = None

        if profile is None or not profile.phone_verified:
            phone = profile.phone_number if profile else None
            log.info("gate_phone_verification_required", user_id=user_id)
            return GateDecision(
                state="phone_verification_required",
                blocking=True,
                dismissible=False,
                phone_number=phone,
                phone_display=format_phone_for_display(phone, self._country_code) or None,
            )

        if not self._mfa_roles:
            return GateDecision.passthrough()

        try:
            role = await self._profiles.get_role(user_id)
        except UpstreamError as e:
            log.warning("gate_role_read_failed", user_id=user_id, error=e.message)
            return GateDecision.passthrough()

        if role in self._mfa_roles:
            status = await self._registry.check_status(user_id, access_token)
            if not status.enabled:
                log.info("gate_mfa_enrollment_required", user_id=user_id, role=role)
                return GateDecision(
                    state="mfa_enrollment_required",
                    blocking=True,
                    dismissible=False,
                    role=role,
                )

        return GateDecision.passthrough()
