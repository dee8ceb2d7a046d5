"""
TOTP challenges, MFA disable and backup codes.

disable_mfa() is two-phase. The step-up (challenge + verify of a verified
factor) yields an elevated session and a request id; the destructive phase
unenrolls every factor with that session and only then clears the profile
flags. If an unenroll fails part-way the request id is handed back and a
retry with it resumes the unenroll loop without asking for a new code.
"""

from __future__ import annotations

from typing import Any, Optional

from errors import UpstreamError
from infrastructure.cache.ephemeral_store import EphemeralStore
from infrastructure.datastore.protocol import BackupCodeStore, ProfileStore
from infrastructure.identity.protocol import IdentityProvider
from schemas.models.results import FlowResult
from schemas.models.security import AuthSession
from services.audit import AuditRecorder
from services.factor_registry import mfa_flags
from shared.datetime_utils import Clock, to_iso, utcnow
from shared.generators import generate_request_id
from shared.logging import get_logger
from shared.validators import validate_otp_format

log = get_logger(__name__)

DISABLE_ERROR_TITLE = "Erro ao desativar 2FA"
NO_VERIFIED_FACTOR = "Nenhum fator MFA verificado encontrado"


class ChallengeService:
    def __init__(
        self,
        identity: IdentityProvider,
        profiles: ProfileStore,
        backup_codes: BackupCodeStore,
        audit: AuditRecorder,
        pending_store: EphemeralStore,
        clock: Clock = utcnow,
        pending_ttl_seconds: int = 900,
    ) -> None:
        self._identity = identity
        self._profiles = profiles
        self._backup_codes = backup_codes
        self._audit = audit
        self._pending = pending_store
        self._clock = clock
        self._pending_ttl = pending_ttl_seconds

    # ── Challenge ─────────────────────────────────────────────────────────────

    async def start_challenge(self, access_token: str, factor_id: str) -> FlowResult[str]:
        try:
            challenge_id = await self._identity.create_challenge(access_token, factor_id)
        except UpstreamError as e:
            log.warning("mfa_challenge_start_failed", factor_id=factor_id, error=e.message)
            return FlowResult.failure("challenge_failed", "Erro ao iniciar desafio 2FA", e.message)
        return FlowResult.success("Desafio iniciado", value=challenge_id)

    async def verify_challenge(
        self,
        user_id: str,
        access_token: str,
        factor_id: str,
        challenge_id: str,
        code: str,
    ) -> FlowResult[AuthSession]:
        session = None
        if validate_otp_format(code):
            try:
                session = await self._identity.verify_challenge(
                    access_token, factor_id, challenge_id, code
                )
            except UpstreamError as e:
                log.warning("mfa_challenge_verify_error", user_id=user_id, error=e.message)

        if session is None:
            await self._audit.mfa_event(
                access_token, "challenge_failed", {"factor_id": factor_id}
            )
            log.info("mfa_challenge_failed", user_id=user_id, factor_id=factor_id)
            return FlowResult.failure(
                "invalid_code", "Código inválido", "Verifique o código e tente novamente."
            )

        await self._audit.mfa_event(
            session.access_token, "challenge_success", {"factor_id": factor_id}
        )
        log.info("mfa_challenge_verified", user_id=user_id, factor_id=factor_id)
        return FlowResult.success("Verificação concluída", value=session)

    # ── Disable ───────────────────────────────────────────────────────────────

    def _pending_key(self, user_id: str, request_id: str) -> str:
        return f"mfa_disable:{user_id}:{request_id}"

    async def _step_up(
        self, user_id: str, access_token: str, code: str
    ) -> tuple[Optional[AuthSession], Optional[FlowResult]]:
        """Prove possession of a verified factor; returns (session, failure)."""
        try:
            factors = await self._identity.list_factors(access_token)
        except UpstreamError as e:
            log.error("mfa_disable_list_failed", user_id=user_id, error=e.message)
            return None, FlowResult.failure("upstream_unavailable", DISABLE_ERROR_TITLE, e.message)

        verified = [f for f in factors if f.is_verified]
        if not verified:
            return None, FlowResult.failure("no_verified_factor", DISABLE_ERROR_TITLE, NO_VERIFIED_FACTOR)

        factor_id = verified[0].id
        session = None
        if validate_otp_format(code):
            try:
                challenge_id = await self._identity.create_challenge(access_token, factor_id)
                session = await self._identity.verify_challenge(
                    access_token, factor_id, challenge_id, code
                )
            except UpstreamError as e:
                log.warning("mfa_disable_step_up_error", user_id=user_id, error=e.message)

        if session is None:
            await self._audit.mfa_event(
                access_token, "disable_failed", {"reason": "invalid_code"}
            )
            return None, FlowResult.failure(
                "invalid_code", DISABLE_ERROR_TITLE, "Código inválido. Verifique e tente novamente."
            )
        return session, None

    async def disable_mfa(
        self,
        user_id: str,
        access_token: str,
        code: str,
        request_id: Optional[str] = None,
    ) -> FlowResult[AuthSession]:
        """Remove every factor and clear the MFA flags.

        Passing the request_id of an earlier partial failure skips the
        step-up; the caller then authenticates with the elevated token it
        received from that attempt.
        """
        session: Optional[AuthSession] = None
        pending = None
        if request_id:
            pending = await self._pending.get(self._pending_key(user_id, request_id))
            if pending is None:
                log.info("mfa_disable_request_unknown", user_id=user_id, request_id=request_id)

        if pending is None:
            session, failure = await self._step_up(user_id, access_token, code)
            if failure is not None:
                return failure
            request_id = generate_request_id()
            try:
                await self._pending.put(
                    self._pending_key(user_id, request_id),
                    {"stepped_up_at": to_iso(self._clock())},
                    self._pending_ttl,
                )
            except Exception as e:
                # not resumable, but the elevated session still allows a fresh attempt
                log.warning("mfa_disable_marker_write_failed", user_id=user_id, error=str(e))

        token = session.access_token if session else access_token
        resume: dict[str, Any] = {"request_id": request_id}
        if session is not None:
            resume["session"] = session.model_dump()

        removed = 0
        try:
            factors = await self._identity.list_factors(token)
            for factor in factors:
                await self._identity.unenroll_factor(token, factor.id)
                removed += 1
            await self._profiles.update_profile(user_id, mfa_flags(False))
        except UpstreamError as e:
            log.error(
                "mfa_disable_partial",
                user_id=user_id,
                request_id=request_id,
                factors_removed=removed,
                error=e.message,
            )
            await self._audit.mfa_event(
                token, "disable_failed", {"reason": "unenroll_failed", "factors_removed": removed}
            )
            return FlowResult.failure(
                "disable_incomplete",
                DISABLE_ERROR_TITLE,
                "Não foi possível remover todos os fatores. Tente novamente.",
                data={**resume, "factors_removed": removed},
            )

        await self._pending.delete(self._pending_key(user_id, request_id))
        await self._audit.mfa_event(token, "disabled", {"factors_removed": removed})
        log.info("mfa_disabled", user_id=user_id, factors_removed=removed)
        return FlowResult.success(
            "2FA desativado",
            "A autenticação de dois fatores foi removida da sua conta.",
            value=session,
            data={"request_id": request_id, "factors_removed": removed},
        )

    # ── Backup codes ──────────────────────────────────────────────────────────

    async def generate_backup_codes(self, access_token: str) -> FlowResult[list[str]]:
        try:
            codes = await self._backup_codes.generate_backup_codes(access_token)
        except UpstreamError as e:
            log.error("mfa_backup_codes_generate_failed", error=e.message)
            return FlowResult.failure("upstream_unavailable", "Erro ao gerar códigos de backup")
        log.info("mfa_backup_codes_generated", count=len(codes))
        return FlowResult.success(
            "Códigos de backup gerados",
            "Guarde estes códigos em um local seguro.",
            value=codes,
        )

    async def verify_backup_code(self, access_token: str, code: str) -> FlowResult[bool]:
        try:
            valid = await self._backup_codes.verify_backup_code(access_token, code.strip())
        except UpstreamError as e:
            log.error("mfa_backup_code_verify_failed", error=e.message)
            valid = False
        if not valid:
            return FlowResult.failure(
                "invalid_code", "Código inválido", "Código de backup inválido ou já utilizado."
            )
        return FlowResult.success("Código de backup aceito", value=True)
