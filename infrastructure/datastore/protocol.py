"""Data store protocols — services depend on these, not the concrete implementation.

ProfileStore    — the security columns of `profiles` plus the user's role
AuditLog        — append-only verification log and MFA event RPC
BackupCodeStore — server-side backup code RPCs (act as the calling user)

Failures raise errors.UpstreamError.
"""

from datetime import datetime
from typing import Any, Optional, Protocol

from schemas.models.security import ProfileSecurityState, VerificationLogEntry


class ProfileStore(Protocol):
    async def get_profile(self, user_id: str) -> Optional[ProfileSecurityState]: ...

    async def update_profile(self, user_id: str, fields: dict[str, Any]) -> None: ...

    async def get_role(self, user_id: str) -> Optional[str]: ...


class AuditLog(Protocol):
    async def insert_verification_log(self, entry: VerificationLogEntry) -> None: ...

    async def count_verification_logs(
        self, phone_number: str, status: str, since: datetime
    ) -> int: ...

    async def log_mfa_event(
        self, access_token: str, event_type: str, metadata: dict[str, Any]
    ) -> None: ...


class BackupCodeStore(Protocol):
    async def generate_backup_codes(self, access_token: str) -> list[str]: ...

    async def verify_backup_code(self, access_token: str, code: str) -> bool: ...
