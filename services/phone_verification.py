"""
Phone verification.

A code is drawn with ``secrets``, held in the ephemeral code store for
``code_ttl_seconds`` and sent over the configured channel (SMS or WhatsApp).
The profile is marked verified only when the user types the code back. The
code itself never reaches the data store or the logs; the verification log
table records only that a code was sent, verified or failed to send.
"""

from __future__ import annotations

import hmac
from datetime import timedelta

from config import VerificationSettings
from errors import UpstreamError
from infrastructure.cache.code_store import PhoneCodeStore
from infrastructure.datastore.protocol import AuditLog, ProfileStore
from infrastructure.messaging.protocol import MessageSender
from schemas.models.results import FlowResult
from schemas.models.security import EphemeralVerificationCode, VerificationStatus
from services.audit import AuditRecorder
from shared.datetime_utils import Clock, to_iso, utcnow
from shared.generators import generate_otp_code
from shared.logging import get_logger, mask_phone
from shared.validators import INVALID_PHONE_MESSAGE, normalize_phone

log = get_logger(__name__)

EXPIRED_TITLE = "Código expirado. Solicite um novo código."
INVALID_CODE_TITLE = "Código inválido"
SEND_ERROR_DESCRIPTION = "Erro ao enviar código de verificação"

MESSAGE_TEMPLATE = "Seu código de verificação é: {code}. Válido por {minutes} minutos."


class PhoneVerificationService:
    def __init__(
        self,
        profiles: ProfileStore,
        audit_log: AuditLog,
        audit: AuditRecorder,
        codes: PhoneCodeStore,
        sender: MessageSender,
        settings: VerificationSettings,
        clock: Clock = utcnow,
    ) -> None:
        self._profiles = profiles
        self._audit_log = audit_log
        self._audit = audit
        self._codes = codes
        self._sender = sender
        self._settings = settings
        self._clock = clock

    def _invalid_phone(self) -> FlowResult:
        return FlowResult.failure(
            "invalid_phone", INVALID_PHONE_MESSAGE, "Use o formato (11) 98765-4321."
        )

    def _expired(self) -> FlowResult:
        return FlowResult.failure("expired", EXPIRED_TITLE)

    async def save_phone(self, user_id: str, phone: str) -> FlowResult:
        """Store a new number on the profile; it starts out unverified."""
        normalized = normalize_phone(phone, self._settings.default_country_code)
        if normalized is None:
            return self._invalid_phone()

        try:
            await self._profiles.update_profile(
                user_id,
                {"phone_number": normalized, "phone_verified": False, "phone_verified_at": None},
            )
        except UpstreamError as e:
            log.error("phone_save_failed", user_id=user_id, error=e.message)
            return FlowResult.failure("upstream_unavailable", "Erro ao salvar telefone")

        log.info("phone_saved", user_id=user_id, phone=mask_phone(normalized))
        return FlowResult.success(
            "Telefone atualizado",
            'Agora clique em "Enviar Código" para verificar.',
            data={"phone_number": normalized},
        )

    async def _rate_limited(self, phone: str) -> bool:
        s = self._settings
        since = self._clock() - timedelta(seconds=s.send_window_seconds)
        try:
            sent = await self._audit_log.count_verification_logs(
                phone, VerificationStatus.SENT.value, since
            )
        except UpstreamError as e:
            log.warning("phone_rate_limit_check_failed", phone=mask_phone(phone), error=e.message)
            return False
        return sent >= s.max_sends_per_window

    async def send_code(self, user_id: str, phone: str) -> FlowResult:
        """Generate, store and dispatch a verification code.

        Sending again overwrites the pending code and restarts its window.
        If dispatch fails the stored code is discarded.
        """
        s = self._settings
        normalized = normalize_phone(phone, s.default_country_code)
        if normalized is None:
            return self._invalid_phone()

        if await self._rate_limited(normalized):
            log.warning("phone_send_rate_limited", user_id=user_id, phone=mask_phone(normalized))
            minutes = max(1, s.send_window_seconds // 60)
            return FlowResult.failure(
                "rate_limited",
                "Muitas tentativas",
                f"Aguarde {minutes} minutos antes de solicitar um novo código.",
            )

        now = self._clock()
        entry = EphemeralVerificationCode(
            code=generate_otp_code(),
            phone=normalized,
            expires_at=now + timedelta(seconds=s.code_ttl_seconds),
        )
        try:
            await self._codes.put(user_id, entry)
        except Exception as e:
            log.error("phone_code_store_failed", user_id=user_id, error=str(e))
            return FlowResult.failure("store_unavailable", "Erro ao enviar código", SEND_ERROR_DESCRIPTION)

        message = MESSAGE_TEMPLATE.format(
            code=entry.code, minutes=max(1, s.code_ttl_seconds // 60)
        )
        if not await self._sender.send(normalized, message):
            await self._codes.delete(user_id)
            await self._audit.phone_event(user_id, normalized, VerificationStatus.FAILED)
            log.error(
                "phone_code_dispatch_failed",
                user_id=user_id,
                phone=mask_phone(normalized),
                channel=self._sender.channel,
            )
            return FlowResult.failure("dispatch_failed", "Erro ao enviar código", SEND_ERROR_DESCRIPTION)

        await self._audit.phone_event(user_id, normalized, VerificationStatus.SENT)
        log.info(
            "phone_code_sent",
            user_id=user_id,
            phone=mask_phone(normalized),
            channel=self._sender.channel,
        )
        return FlowResult.success(
            "Código enviado",
            "Verifique seu telefone e insira o código recebido.",
            data={
                "phone_number": normalized,
                "expires_at": to_iso(entry.expires_at),
                "channel": self._sender.channel,
            },
        )

    async def verify_code(self, user_id: str, candidate: str) -> FlowResult:
        """Compare *candidate* with the pending code.

        A code that was never sent and one that timed out get the same
        answer. After ``max_verify_attempts`` wrong guesses the pending code
        is discarded (0 disables the limit).
        """
        entry = await self._codes.get(user_id)
        if entry is None:
            return self._expired()

        now = self._clock()
        if entry.is_expired(now):
            await self._codes.delete(user_id)
            log.info("phone_code_expired", user_id=user_id)
            return self._expired()

        if not hmac.compare_digest(candidate.strip().encode(), entry.code.encode()):
            entry.attempts += 1
            limit = self._settings.max_verify_attempts
            if limit and entry.attempts >= limit:
                await self._codes.delete(user_id)
                log.warning("phone_code_attempts_exhausted", user_id=user_id, attempts=entry.attempts)
                return self._expired()
            try:
                await self._codes.put(user_id, entry)
            except Exception as e:
                log.error("phone_code_attempt_store_failed", user_id=user_id, error=str(e))
            log.info("phone_code_mismatch", user_id=user_id, attempts=entry.attempts)
            return FlowResult.failure("invalid_code", INVALID_CODE_TITLE)

        try:
            await self._profiles.update_profile(
                user_id,
                {"phone_number": entry.phone, "phone_verified": True, "phone_verified_at": now},
            )
        except UpstreamError as e:
            log.error("phone_verify_profile_update_failed", user_id=user_id, error=e.message)
            return FlowResult.failure("upstream_unavailable", "Erro ao verificar código")

        await self._codes.delete(user_id)
        await self._audit.phone_event(user_id, entry.phone, VerificationStatus.VERIFIED)
        log.info("phone_verified", user_id=user_id, phone=mask_phone(entry.phone))
        return FlowResult.success(
            "Telefone verificado!",
            "Seu número de telefone foi verificado com sucesso.",
            data={"phone_number": entry.phone},
        )

    async def cancel(self, user_id: str) -> FlowResult:
        await self._codes.delete(user_id)
        return FlowResult.success("Verificação cancelada")
