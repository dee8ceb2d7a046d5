"""
GET /security/gate — what the authenticated shell must show before the app.

Anonymous callers get a passthrough decision; the gate only applies to
signed-in users.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from dependencies import UserContext, get_enforcement_gate, get_optional_user
from schemas.dto.responses.security import GateResponse
from services.enforcement import EnforcementGate

router = APIRouter(prefix="/security", tags=["gate"])


@router.get("/gate", response_model=GateResponse)
async def evaluate_gate(
    ctx: Optional[UserContext] = Depends(get_optional_user),
    gate: EnforcementGate = Depends(get_enforcement_gate),
) -> GateResponse:
    if ctx is None:
        decision = await gate.evaluate(None)
    else:
        decision = await gate.evaluate(ctx.user_id, ctx.access_token)
    return GateResponse(**decision.model_dump())
