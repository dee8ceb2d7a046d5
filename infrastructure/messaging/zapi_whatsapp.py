"""Z-API (WhatsApp) implementation of MessageSender.

Z-API addresses recipients as bare digits with the Brazilian country code:
``55`` + area code + number, 12 or 13 digits in total.
"""

import re

from config import MessagingSettings
from infrastructure.http_client import HttpClient
from shared.logging import get_logger, mask_phone

log = get_logger(__name__)

_ZAPI_SEND_TEXT_URL = "https://api.z-api.io/instances/{instance}/token/{token}/send-text"


def to_zapi_phone(phone: str) -> str:
    """Strip everything but digits (``+55 11 98765-4321`` → ``5511987654321``)."""
    return re.sub(r"\D", "", phone)


class ZApiWhatsAppSender:
    channel = "whatsapp"

    def __init__(self, settings: MessagingSettings, http_client: HttpClient) -> None:
        self._settings = settings
        self._http = http_client

    async def send(self, destination: str, message: str) -> bool:
        s = self._settings
        if not (s.zapi_instance_id and s.zapi_token):
            log.error("zapi_send_failed", reason="credentials_not_configured")
            return False

        phone = to_zapi_phone(destination)
        if not phone.startswith("55") or not 12 <= len(phone) <= 13:
            log.warning("zapi_send_failed", reason="invalid_destination", to=mask_phone(phone))
            return False

        try:
            response = await self._http.post(
                _ZAPI_SEND_TEXT_URL.format(instance=s.zapi_instance_id, token=s.zapi_token),
                json={"phone": phone, "message": message},
            )
            if response.status_code in (200, 201):
                log.info(
                    "whatsapp_sent_success",
                    to=mask_phone(phone),
                    message_id=response.json().get("messageId"),
                )
                return True
            log.error(
                "whatsapp_send_failed",
                to=mask_phone(phone),
                status_code=response.status_code,
                response=response.text[:200],
            )
            return False
        except Exception as e:
            log.error(
                "whatsapp_send_error",
                to=mask_phone(phone),
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
