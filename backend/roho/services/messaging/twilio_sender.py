"""
Outbound WhatsApp delivery through the Twilio REST API
"""
import json
import logging
from typing import Any, Dict, Optional

import httpx

from roho.core.config import settings
from roho.core.security import mask_phone, safe_log_error
from roho.schemas.messages import OutboundMessage

logger = logging.getLogger(__name__)


class TwilioSender:
    """Sends OutboundMessage replies as WhatsApp messages"""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        api_base: str = "https://api.twilio.com/2010-04-01",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @property
    def messages_url(self) -> str:
        return f"{self.api_base}/Accounts/{self.account_sid}/Messages.json"

    def build_form(self, to: str, message: OutboundMessage) -> Dict[str, Any]:
        form = {"From": self.from_number, "To": to}
        if message.type == "template":
            form["ContentSid"] = message.template_id
            if message.variables:
                form["ContentVariables"] = json.dumps(message.variables)
        else:
            form["Body"] = message.text
        return form

    async def send(self, to: str, message: OutboundMessage) -> bool:
        """
        Deliver one message.

        Returns:
            True if Twilio accepted it. Failures are logged, never raised,
            since this runs after the webhook has already answered.
        """
        if not self.account_sid or not self.auth_token:
            logger.warning(f"Twilio not configured, reply to {mask_phone(to)} dropped")
            return False

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                auth=(self.account_sid, self.auth_token),
                transport=self._transport,
            ) as client:
                response = await client.post(self.messages_url, data=self.build_form(to, message))

            if response.status_code in (200, 201):
                sid = response.json().get("sid")
                logger.info(f"📤 Sent {message.type} message {sid} to {mask_phone(to)}")
                return True

            safe_log_error(
                f"Twilio rejected message to {to}",
                RuntimeError(f"HTTP {response.status_code}: {response.text}"),
            )
            return False

        except httpx.TimeoutException:
            logger.warning(f"Twilio timeout sending to {mask_phone(to)}")
            return False
        except httpx.HTTPError as e:
            safe_log_error(f"Twilio transport error sending to {to}", e)
            return False


def build_sender() -> TwilioSender:
    return TwilioSender(
        account_sid=settings.TWILIO_ACCOUNT_SID,
        auth_token=settings.TWILIO_AUTH_TOKEN,
        from_number=settings.TWILIO_PHONE_NUMBER,
        api_base=settings.TWILIO_API_BASE,
    )
