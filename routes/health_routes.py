"""
Health check endpoint.

GET /health — checks the identity provider and Redis.
Rules:
- identity provider unreachable or answering 5xx → "unhealthy" (503); no
  flow works without it.
- Redis failure or absence → "degraded" (200); pending codes fall back to
  the in-process store.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from schemas.dto.responses.common import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> JSONResponse:
    checks: dict[str, str] = {}
    overall = "healthy"
    state = request.app.state

    try:
        response = await state.identity_http.get(
            state.settings.identity.auth_url.rstrip("/") + "/auth/v1/health",
            headers={"apikey": state.settings.identity.auth_anon_key},
        )
        checks["identity_provider"] = "ok" if response.status_code < 500 else "error"
    except Exception:
        checks["identity_provider"] = "error"
    if checks["identity_provider"] == "error":
        overall = "unhealthy"

    redis = state.redis
    if redis is None:
        checks["redis"] = "not_configured"
        if overall == "healthy":
            overall = "degraded"
    else:
        try:
            await redis.ping()
            checks["redis"] = "ok"
        except Exception:
            checks["redis"] = "error"
            if overall == "healthy":
                overall = "degraded"

    status_code = 503 if overall == "unhealthy" else 200
    return JSONResponse(
        status_code=status_code,
        content={"status": overall, "checks": checks},
    )
