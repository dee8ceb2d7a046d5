"""Best-effort audit trail.

Audit writes never decide the outcome of a flow: a failed write is logged
and dropped, never retried, never shown to the user.
"""

from __future__ import annotations

from typing import Any

from infrastructure.datastore.protocol import AuditLog
from schemas.models.security import (
    PHONE_VERIFICATION,
    VerificationLogEntry,
    VerificationStatus,
)
from shared.datetime_utils import Clock, utcnow
from shared.logging import get_logger, mask_phone

log = get_logger(__name__)


class AuditRecorder:
    def __init__(self, audit_log: AuditLog, clock: Clock = utcnow) -> None:
        self._audit_log = audit_log
        self._clock = clock

    async def phone_event(
        self,
        user_id: str,
        phone_number: str,
        status: VerificationStatus,
        verification_type: str = PHONE_VERIFICATION,
    ) -> None:
        entry = VerificationLogEntry(
            user_id=user_id,
            phone_number=phone_number,
            verification_type=verification_type,
            status=status,
            created_at=self._clock(),
        )
        try:
            await self._audit_log.insert_verification_log(entry)
        except Exception as e:
            log.warning(
                "verification_log_write_failed",
                user_id=user_id,
                phone=mask_phone(phone_number),
                status=status.value,
                error=str(e),
                error_type=type(e).__name__,
            )

    async def mfa_event(
        self, access_token: str, event_type: str, metadata: dict[str, Any]
    ) -> None:
        try:
            await self._audit_log.log_mfa_event(access_token, event_type, metadata)
        except Exception as e:
            log.warning(
                "mfa_event_log_failed",
                event_type=event_type,
                error=str(e),
                error_type=type(e).__name__,
            )
