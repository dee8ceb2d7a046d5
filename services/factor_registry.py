"""
Factor registry sync.

The identity provider is the source of truth for which factors exist and
which are verified; the profile's mfa_enabled column is a cache of
"at least one verified factor" that pages can read without a provider round
trip. check_status() repairs drift between the two every time it runs, so a
missed write elsewhere heals on the next status check.
"""

from __future__ import annotations

from typing import Optional

from errors import UpstreamError
from infrastructure.datastore.protocol import ProfileStore
from infrastructure.identity.protocol import IdentityProvider
from schemas.models.results import FlowResult
from schemas.models.security import MFAStatus
from shared.logging import get_logger

log = get_logger(__name__)


def mfa_flags(enabled: bool) -> dict[str, bool]:
    """Profile columns for an MFA state; the two flags always move together."""
    return {"mfa_enabled": enabled, "mfa_verified": enabled}


class FactorRegistry:
    def __init__(self, identity: IdentityProvider, profiles: ProfileStore) -> None:
        self._identity = identity
        self._profiles = profiles

    async def check_status(
        self, user_id: str, access_token: Optional[str] = None
    ) -> MFAStatus:
        """Return the user's MFA status, correcting the profile flag if it drifted.

        Never raises: when the identity provider cannot be asked (no session,
        provider down) the cached profile value is returned as-is.
        """
        cached = False
        try:
            profile = await self._profiles.get_profile(user_id)
            cached = bool(profile and profile.mfa_enabled)
        except UpstreamError as e:
            log.warning("mfa_profile_read_failed", user_id=user_id, error=e.message)

        if not access_token:
            return MFAStatus(enabled=cached, source="profile")

        try:
            factors = await self._identity.list_factors(access_token)
        except UpstreamError:
            log.info("mfa_factors_unavailable", user_id=user_id)
            return MFAStatus(enabled=cached, source="profile")

        status = MFAStatus(
            enabled=any(f.is_verified for f in factors),
            factors=factors,
            source="provider",
        )

        if status.enabled != cached:
            try:
                await self._profiles.update_profile(user_id, mfa_flags(status.enabled))
                log.info(
                    "mfa_flag_drift_corrected",
                    user_id=user_id,
                    profile_enabled=cached,
                    provider_enabled=status.enabled,
                    verified_factors=len(status.verified_factors),
                )
            except UpstreamError as e:
                log.warning("mfa_flag_correction_failed", user_id=user_id, error=e.message)

        return status

    async def cleanup_unverified(self, user_id: str, access_token: str) -> FlowResult:
        """Unenroll abandoned (unverified) factors.

        When no verified factor remains afterwards the profile flags are
        cleared as well.
        """
        try:
            factors = await self._identity.list_factors(access_token)
            stale = [f for f in factors if not f.is_verified]
            for factor in stale:
                await self._identity.unenroll_factor(access_token, factor.id)
            if not any(f.is_verified for f in factors):
                await self._profiles.update_profile(user_id, mfa_flags(False))
        except UpstreamError as e:
            log.error("mfa_cleanup_failed", user_id=user_id, error=e.message)
            return FlowResult.failure(
                "upstream_unavailable",
                "Erro ao limpar fatores pendentes",
                "Não foi possível remover os fatores não verificados.",
            )

        log.info("mfa_unverified_factors_removed", user_id=user_id, removed=len(stale))
        return FlowResult.success(
            "Fatores pendentes removidos",
            data={"factors_removed": len(stale)},
        )
