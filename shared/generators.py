"""
Random code and name generators — pure, side-effect-free functions.

Verification codes use the ``secrets`` module; nothing here touches the
system PRNG.
"""

from __future__ import annotations

import secrets
import uuid
from datetime import datetime

OTP_MIN = 100_000
OTP_MAX = 999_999


def generate_otp_code() -> str:
    """Draw a 6-digit verification code uniformly from [100000, 999999].

    The lower bound keeps every code exactly six digits long without
    zero-padding.
    """
    return str(OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1))


def generate_factor_name(now: datetime) -> str:
    """Unique friendly name for a new TOTP factor (``TOTP <ISO timestamp>``).

    The identity provider rejects duplicate friendly names per account, and
    abandoned enrollments may still hold the previous one until cleanup.
    """
    return f"TOTP {now.isoformat()}"


def generate_request_id() -> str:
    """Generate an opaque id for a resumable disable request."""
    return f"dis_{uuid.uuid4().hex[:16]}"
