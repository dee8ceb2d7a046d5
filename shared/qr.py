"""QR code rendering for TOTP enrollment (otpauth URI → PNG data URI)."""

from __future__ import annotations

import base64
import io

import qrcode


def make_qr_data_uri(otpauth_uri: str) -> str:
    """Render *otpauth_uri* as a ``data:image/png;base64,...`` string."""
    img = qrcode.make(otpauth_uri)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    data = base64.b64encode(buf.getvalue()).decode("ascii")
    return f"data:image/png;base64,{data}"
