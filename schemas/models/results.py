"""
Flow outcomes.

Every service operation resolves to a FlowResult instead of raising: `ok`
says whether the state transition happened, `notice` carries the
Portuguese copy shown to the user, `reason` is a stable machine-readable
failure code and `data` holds the payload (enrollment material, session,
resumable request id...).

GateDecision is what the enforcement gate tells the front end to render.
"""

from __future__ import annotations

from typing import Any, Generic, Literal, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Notice(BaseModel):
    """Toast-style notification (title, description, variant)."""

    title: str
    description: str = ""
    variant: Literal["default", "destructive"] = "default"


class FlowResult(BaseModel, Generic[T]):
    ok: bool
    notice: Notice
    reason: Optional[str] = None
    value: Optional[T] = None
    data: Optional[dict[str, Any]] = None

    @classmethod
    def success(
        cls,
        title: str,
        description: str = "",
        value: Optional[T] = None,
        data: Optional[dict[str, Any]] = None,
    ) -> "FlowResult[T]":
        return cls(ok=True, notice=Notice(title=title, description=description), value=value, data=data)

    @classmethod
    def failure(
        cls,
        reason: str,
        title: str,
        description: str = "",
        data: Optional[dict[str, Any]] = None,
    ) -> "FlowResult[T]":
        return cls(
            ok=False,
            reason=reason,
            notice=Notice(title=title, description=description or title, variant="destructive"),
            data=data,
        )


GateState = Literal[
    "passthrough",
    "phone_verification_required",
    "mfa_enrollment_required",
]


class GateDecision(BaseModel):
    """What the authenticated shell must render before the application."""

    state: GateState
    blocking: bool = False
    dismissible: bool = True
    phone_number: Optional[str] = None
    phone_display: Optional[str] = None
    role: Optional[str] = None

    @classmethod
    def passthrough(cls) -> "GateDecision":
        return cls(state="passthrough")
