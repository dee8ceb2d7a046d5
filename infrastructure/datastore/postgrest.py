"""PostgREST implementation of ProfileStore, AuditLog and BackupCodeStore.

Table reads and writes use the service key (row-level security is bypassed
for the columns this service owns); RPCs that rely on ``auth.uid()`` are
called with the user's bearer token instead.

    GET   /rest/v1/profiles?id=eq.{id}&select=...
    PATCH /rest/v1/profiles?id=eq.{id}
    GET   /rest/v1/user_roles?user_id=eq.{id}&select=role&order=role.asc&limit=1
    POST  /rest/v1/sms_verification_logs
    GET   /rest/v1/sms_verification_logs?phone_number=eq...&status=eq...&created_at=gte...
    POST  /rest/v1/rpc/log_mfa_event | generate_mfa_backup_codes | verify_mfa_backup_code
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

import httpx

from config import DataStoreSettings
from errors import UpstreamError
from infrastructure.http_client import HttpClient
from schemas.models.security import ProfileSecurityState, VerificationLogEntry
from shared.datetime_utils import to_iso
from shared.logging import get_logger, mask_phone

log = get_logger(__name__)

_PROFILE_COLUMNS = ",".join(ProfileSecurityState.model_fields)


class PostgrestDataStore:
    def __init__(
        self,
        settings: DataStoreSettings,
        http_client: HttpClient,
        anon_key: str = "",
    ) -> None:
        self._settings = settings
        self._base = settings.rest_url.rstrip("/") + "/rest/v1"
        self._http = http_client
        self._anon_key = anon_key or settings.rest_service_key

    def _service_headers(self, **extra: str) -> dict[str, str]:
        key = self._settings.rest_service_key
        return {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
            **extra,
        }

    def _user_headers(self, access_token: str) -> dict[str, str]:
        return {
            "apikey": self._anon_key,
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        call = getattr(self._http, method)
        try:
            response = await call(f"{self._base}{path}", **kwargs)
        except Exception as e:
            log.error(
                "datastore_request_failed",
                method=method,
                path=path,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise UpstreamError("Banco de dados indisponível") from e
        if response.status_code >= 400:
            log.error(
                "datastore_error_response",
                method=method,
                path=path,
                status_code=response.status_code,
                response_text=response.text[:200],
            )
            raise UpstreamError("Erro ao acessar o banco de dados")
        return response

    # ── profiles ─────────────────────────────────────────────────────────────

    async def get_profile(self, user_id: str) -> Optional[ProfileSecurityState]:
        response = await self._send(
            "get",
            f"/{self._settings.profiles_table}",
            params={"id": f"eq.{user_id}", "select": _PROFILE_COLUMNS},
            headers=self._service_headers(),
        )
        rows = response.json()
        if not rows:
            return None
        return ProfileSecurityState.model_validate(
            {k: v for k, v in rows[0].items() if v is not None}
        )

    async def update_profile(self, user_id: str, fields: dict[str, Any]) -> None:
        payload = {
            k: to_iso(v) if isinstance(v, datetime) else v for k, v in fields.items()
        }
        await self._send(
            "patch",
            f"/{self._settings.profiles_table}",
            params={"id": f"eq.{user_id}"},
            json=payload,
            headers=self._service_headers(Prefer="return=minimal"),
        )
        log.info("profile_updated", user_id=user_id, fields=sorted(payload))

    async def get_role(self, user_id: str) -> Optional[str]:
        response = await self._send(
            "get",
            f"/{self._settings.roles_table}",
            params={
                "user_id": f"eq.{user_id}",
                "select": "role",
                "order": "role.asc",
                "limit": "1",
            },
            headers=self._service_headers(),
        )
        rows = response.json()
        return rows[0].get("role") if rows else None

    # ── audit ────────────────────────────────────────────────────────────────

    async def insert_verification_log(self, entry: VerificationLogEntry) -> None:
        await self._send(
            "post",
            f"/{self._settings.verification_logs_table}",
            json=entry.model_dump(mode="json", exclude_none=True),
            headers=self._service_headers(Prefer="return=minimal"),
        )

    async def count_verification_logs(
        self, phone_number: str, status: str, since: datetime
    ) -> int:
        response = await self._send(
            "get",
            f"/{self._settings.verification_logs_table}",
            params=[
                ("select", "id"),
                ("phone_number", f"eq.{phone_number}"),
                ("status", f"eq.{status}"),
                ("created_at", f"gte.{to_iso(since)}"),
            ],
            headers=self._service_headers(),
        )
        count = len(response.json())
        log.debug(
            "verification_logs_counted",
            phone=mask_phone(phone_number),
            status=status,
            count=count,
        )
        return count

    async def log_mfa_event(
        self, access_token: str, event_type: str, metadata: dict[str, Any]
    ) -> None:
        await self._send(
            "post",
            "/rpc/log_mfa_event",
            json={"p_event_type": event_type, "p_metadata": metadata},
            headers=self._user_headers(access_token),
        )

    # ── backup codes ─────────────────────────────────────────────────────────

    async def generate_backup_codes(self, access_token: str) -> list[str]:
        response = await self._send(
            "post",
            "/rpc/generate_mfa_backup_codes",
            json={},
            headers=self._user_headers(access_token),
        )
        return [str(c) for c in (response.json() or [])]

    async def verify_backup_code(self, access_token: str, code: str) -> bool:
        response = await self._send(
            "post",
            "/rpc/verify_mfa_backup_code",
            json={"p_code": code},
            headers=self._user_headers(access_token),
        )
        return response.json() is True
