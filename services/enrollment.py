"""
TOTP enrollment.

enroll() clears abandoned enrollments and asks the identity provider for a new
TOTP factor; verify() confirms the first code from the authenticator app and
flips the profile flags. A factor that is never verified stays unverified and
is removed by the next enroll() or by cleanup.
"""

from __future__ import annotations

from typing import Callable, Optional

from errors import UpstreamError
from infrastructure.datastore.protocol import ProfileStore
from infrastructure.identity.protocol import IdentityProvider
from schemas.models.results import FlowResult
from schemas.models.security import AuthSession, EnrollmentMaterial
from services.audit import AuditRecorder
from services.factor_registry import mfa_flags
from shared.datetime_utils import Clock, utcnow
from shared.generators import generate_factor_name
from shared.logging import get_logger
from shared.qr import make_qr_data_uri
from shared.validators import validate_otp_format

log = get_logger(__name__)

ENROLL_ERROR_TITLE = "Erro ao configurar 2FA"
INVALID_CODE_TITLE = "Código inválido"


class EnrollmentService:
    def __init__(
        self,
        identity: IdentityProvider,
        profiles: ProfileStore,
        audit: AuditRecorder,
        clock: Clock = utcnow,
        qr_renderer: Callable[[str], str] = make_qr_data_uri,
    ) -> None:
        self._identity = identity
        self._profiles = profiles
        self._audit = audit
        self._clock = clock
        self._render_qr = qr_renderer

    async def enroll(
        self, user_id: str, access_token: str
    ) -> FlowResult[EnrollmentMaterial]:
        """Start a TOTP enrollment.

        Every unverified factor is unenrolled first, so a user retrying the
        setup never accumulates pending factors.
        """
        try:
            factors = await self._identity.list_factors(access_token)
            stale = [f for f in factors if not f.is_verified]
            for factor in stale:
                await self._identity.unenroll_factor(access_token, factor.id)
            material = await self._identity.enroll_factor(
                access_token, "totp", generate_factor_name(self._clock())
            )
        except UpstreamError as e:
            log.warning("mfa_enroll_failed", user_id=user_id, error=e.message)
            return FlowResult.failure(
                "enroll_failed", ENROLL_ERROR_TITLE, e.message or ENROLL_ERROR_TITLE
            )

        if material.uri:
            material.qr_data_uri = self._render_qr(material.uri)

        log.info(
            "mfa_enroll_started",
            user_id=user_id,
            factor_id=material.factor_id,
            stale_factors_removed=len(stale),
        )
        return FlowResult.success(
            "Escaneie o código QR",
            "Use um aplicativo autenticador e insira o código gerado.",
            value=material,
        )

    async def verify(
        self,
        user_id: str,
        access_token: str,
        factor_id: str,
        code: str,
        challenge_id: Optional[str] = None,
    ) -> FlowResult[AuthSession]:
        """Confirm a pending factor with a code from the authenticator app.

        A provider rejection and a provider failure look the same to the
        user; the factor stays unverified and the profile is untouched.
        """
        if not validate_otp_format(code):
            return FlowResult.failure(
                "invalid_code", INVALID_CODE_TITLE, "Por favor, insira um código de 6 dígitos."
            )

        try:
            cid = challenge_id or await self._identity.create_challenge(access_token, factor_id)
            session = await self._identity.verify_challenge(access_token, factor_id, cid, code)
        except UpstreamError as e:
            log.warning("mfa_enroll_verify_error", user_id=user_id, error=e.message)
            session = None

        if session is None:
            log.info("mfa_enroll_verify_rejected", user_id=user_id, factor_id=factor_id)
            return FlowResult.failure(
                "invalid_code", INVALID_CODE_TITLE, "Verifique o código e tente novamente."
            )

        fields = {**mfa_flags(True), "mfa_enrollment_date": self._clock()}
        try:
            await self._profiles.update_profile(user_id, fields)
        except UpstreamError as e:
            # the next status check repairs the flag from the provider
            log.error("mfa_enroll_profile_update_failed", user_id=user_id, error=e.message)

        await self._audit.mfa_event(
            session.access_token, "enrollment", {"factor_type": "totp", "factor_id": factor_id}
        )
        log.info("mfa_enrolled", user_id=user_id, factor_id=factor_id)
        return FlowResult.success(
            "2FA ativado com sucesso",
            "Sua conta agora está protegida com autenticação de dois fatores.",
            value=session,
        )
