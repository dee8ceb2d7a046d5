"""Twilio SMS implementation of MessageSender.

Uses the Messages REST resource directly through HttpClient (form-encoded
POST, HTTP basic auth with the account SID and auth token).
"""

from config import MessagingSettings
from infrastructure.http_client import HttpClient
from shared.logging import get_logger, mask_phone
from shared.validators import is_e164

log = get_logger(__name__)

_TWILIO_API_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"


class TwilioSmsSender:
    channel = "sms"

    def __init__(self, settings: MessagingSettings, http_client: HttpClient) -> None:
        self._settings = settings
        self._http = http_client

    async def send(self, destination: str, message: str) -> bool:
        s = self._settings
        if not (s.twilio_account_sid and s.twilio_auth_token and s.twilio_phone_number):
            log.error("twilio_send_failed", reason="credentials_not_configured")
            return False
        if not is_e164(destination):
            log.warning("twilio_send_failed", reason="invalid_destination", to=mask_phone(destination))
            return False

        try:
            response = await self._http.post(
                _TWILIO_API_URL.format(sid=s.twilio_account_sid),
                data={"To": destination, "From": s.twilio_phone_number, "Body": message},
                auth=(s.twilio_account_sid, s.twilio_auth_token),
            )
            if response.status_code in (200, 201):
                log.info(
                    "sms_sent_success",
                    to=mask_phone(destination),
                    message_sid=response.json().get("sid"),
                )
                return True
            log.error(
                "sms_send_failed",
                to=mask_phone(destination),
                status_code=response.status_code,
                response=response.text[:200],
            )
            return False
        except Exception as e:
            log.error(
                "sms_send_error",
                to=mask_phone(destination),
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
