"""
Phone and code validators — framework-agnostic, pure functions.

Phone numbers are accepted in the loose Brazilian formats users type
(``(11) 98765-4321``, ``11987654321``, ``+55 11 98765-4321``) and normalised
to a canonical international form (``+5511987654321``) before they are
stored, logged or dispatched.
"""

from __future__ import annotations

import re
from typing import Optional

_PHONE_INPUT_RE = re.compile(r"^(\+55\s?)?(\(?\d{2}\)?\s?)?9?\d{4}-?\d{4}$")
_E164_RE = re.compile(r"^\+[1-9]\d{1,14}$")
_OTP_RE = re.compile(r"^\d{6}$")

INVALID_PHONE_MESSAGE = "Telefone inválido"


def validate_phone(phone: str) -> bool:
    """Return True if *phone* matches one of the accepted input formats."""
    return bool(_PHONE_INPUT_RE.match(phone.strip()))


def normalize_phone(phone: str, country_code: str = "55") -> Optional[str]:
    """Normalise *phone* to ``+<country><area><number>``.

    Returns:
        The canonical number, or ``None`` when the input is not a valid phone.
        Input that already carries the country prefix is not prefixed twice.
    """
    if not validate_phone(phone):
        return None
    digits = re.sub(r"\D", "", phone)
    if phone.strip().startswith("+"):
        return f"+{digits}"
    return f"+{country_code}{digits}"


def is_e164(phone: str) -> bool:
    """Return True if *phone* is a valid E.164 number (``+`` and up to 15 digits)."""
    return bool(_E164_RE.match(phone))


def format_phone_for_display(phone: Optional[str], country_code: str = "55") -> str:
    """Render a stored number as ``(11) 98765-4321``.

    Numbers that do not reduce to an 11-digit local mobile are returned as-is.
    """
    if not phone:
        return ""
    local = re.sub(r"\D", "", re.sub(rf"^\+{country_code}", "", phone))
    if len(local) == 11:
        return f"({local[:2]}) {local[2:7]}-{local[7:]}"
    return phone


def validate_otp_format(code: str) -> bool:
    """Return True if *code* is exactly six decimal digits."""
    return bool(_OTP_RE.match(code or ""))
