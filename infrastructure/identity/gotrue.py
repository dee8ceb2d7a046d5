"""GoTrue (hosted auth) implementation of IdentityProvider.

REST endpoints used, all relative to ``{auth_url}/auth/v1``:

    GET    /user                         current user, including ``factors``
    POST   /factors                      enroll {factor_type, friendly_name}
    POST   /factors/{id}/challenge       → {id, expires_at}
    POST   /factors/{id}/verify          {challenge_id, code} → session tokens
    DELETE /factors/{id}                 unenroll

Every request carries the project ``apikey`` and the user's bearer token.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from errors import UpstreamError
from infrastructure.http_client import HttpClient
from schemas.models.security import AuthFactor, AuthSession, AuthUser, EnrollmentMaterial
from shared.logging import get_logger

log = get_logger(__name__)


class GoTrueIdentityProvider:
    def __init__(
        self,
        auth_url: str,
        anon_key: str,
        http_client: HttpClient,
        issuer: Optional[str] = None,
    ) -> None:
        self._base = auth_url.rstrip("/") + "/auth/v1"
        self._anon_key = anon_key
        self._http = http_client
        self._issuer = issuer

    def _headers(self, access_token: str) -> dict[str, str]:
        return {
            "apikey": self._anon_key,
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }

    async def _request(
        self, method: str, path: str, access_token: str, **kwargs: Any
    ) -> httpx.Response:
        """Send a request; transport errors and 5xx become UpstreamError."""
        call = getattr(self._http, method)
        try:
            response = await call(
                f"{self._base}{path}", headers=self._headers(access_token), **kwargs
            )
        except Exception as e:
            log.error(
                "identity_provider_request_failed",
                method=method,
                path=path,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise UpstreamError("Provedor de autenticação indisponível") from e

        if response.status_code >= 500:
            log.error(
                "identity_provider_server_error",
                method=method,
                path=path,
                status_code=response.status_code,
                response_text=response.text[:200],
            )
            raise UpstreamError("Provedor de autenticação indisponível")
        return response

    def _raise_for_client_error(self, response: httpx.Response, action: str) -> None:
        if response.status_code >= 400:
            message = _error_message(response)
            log.warning(
                "identity_provider_rejected",
                action=action,
                status_code=response.status_code,
                message=message,
            )
            raise UpstreamError(message or "Operação rejeitada pelo provedor", details={"action": action})

    async def get_user(self, access_token: str) -> Optional[AuthUser]:
        response = await self._request("get", "/user", access_token)
        if response.status_code in (401, 403):
            return None
        self._raise_for_client_error(response, "get_user")
        body = response.json()
        return AuthUser(id=body["id"], email=body.get("email"))

    async def list_factors(self, access_token: str) -> list[AuthFactor]:
        response = await self._request("get", "/user", access_token)
        self._raise_for_client_error(response, "list_factors")
        factors = response.json().get("factors") or []
        return [AuthFactor.model_validate(f) for f in factors]

    async def enroll_factor(
        self, access_token: str, factor_type: str, friendly_name: str
    ) -> EnrollmentMaterial:
        payload = {"factor_type": factor_type, "friendly_name": friendly_name}
        if self._issuer:
            payload["issuer"] = self._issuer
        response = await self._request(
            "post",
            "/factors",
            access_token,
            json=payload,
        )
        self._raise_for_client_error(response, "enroll_factor")
        body = response.json()
        totp = body.get("totp") or {}
        return EnrollmentMaterial(
            factor_id=body["id"],
            friendly_name=body.get("friendly_name") or friendly_name,
            secret=totp.get("secret", ""),
            uri=totp.get("uri", ""),
            qr_code=totp.get("qr_code"),
        )

    async def create_challenge(self, access_token: str, factor_id: str) -> str:
        response = await self._request(
            "post", f"/factors/{factor_id}/challenge", access_token, json={}
        )
        self._raise_for_client_error(response, "create_challenge")
        return response.json()["id"]

    async def verify_challenge(
        self, access_token: str, factor_id: str, challenge_id: str, code: str
    ) -> Optional[AuthSession]:
        response = await self._request(
            "post",
            f"/factors/{factor_id}/verify",
            access_token,
            json={"challenge_id": challenge_id, "code": code},
        )
        if response.status_code >= 400:
            # expired challenge, wrong code and unknown factor all land here
            log.info(
                "factor_verification_rejected",
                factor_id=factor_id,
                status_code=response.status_code,
            )
            return None
        body = response.json()
        return AuthSession(
            access_token=body["access_token"],
            refresh_token=body.get("refresh_token"),
            expires_in=body.get("expires_in"),
        )

    async def unenroll_factor(self, access_token: str, factor_id: str) -> None:
        response = await self._request("delete", f"/factors/{factor_id}", access_token)
        self._raise_for_client_error(response, "unenroll_factor")


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return str(body.get("msg") or body.get("message") or body.get("error_description") or body.get("error") or "")
    return ""
