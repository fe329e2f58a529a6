"""Twilio integration for sending WhatsApp messages."""

from typing import Optional

import structlog
from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client

from schoolops.config.settings import settings
from schoolops.middleware.logging import mask_phone

logger = structlog.get_logger()


class TwilioError(Exception):
    """Raised when Twilio rejects or fails a message."""

    def __init__(self, message: str, code: Optional[int] = None):
        self.code = code
        super().__init__(message)


class TwilioWhatsAppClient:
    """Service for sending WhatsApp messages via Twilio.

    The SDK is synchronous; callers on the event loop should run
    `send_message` in a worker thread.
    """

    def __init__(
        self,
        account_sid: Optional[str] = None,
        auth_token: Optional[str] = None,
        from_number: Optional[str] = None,
    ):
        self.account_sid = account_sid or settings.TWILIO_ACCOUNT_SID
        self.auth_token = auth_token or settings.TWILIO_AUTH_TOKEN
        self.from_number = from_number or settings.TWILIO_WHATSAPP_NUMBER
        self._client: Optional[Client] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = Client(self.account_sid, self.auth_token)
        return self._client

    def _sender(self) -> str:
        sender = self.from_number or ""
        return sender if sender.startswith("whatsapp:") else f"whatsapp:{sender}"

    def send_message(self, to: str, body: str) -> str:
        """
        Send a WhatsApp message.

        Args:
            to: Recipient number in E.164 form (+15551234567)
            body: Message text

        Returns:
            Twilio message SID

        Raises:
            TwilioError: If Twilio is not configured or rejects the message
        """
        if not self.is_configured:
            raise TwilioError("Twilio WhatsApp is not configured")

        try:
            message = self.client.messages.create(
                body=body,
                from_=self._sender(),
                to=f"whatsapp:{to}",
            )
        except TwilioRestException as e:
            logger.error(
                "Twilio error sending WhatsApp message",
                to=mask_phone(to),
                code=e.code,
                error=e.msg,
            )
            raise TwilioError(f"Failed to send message: {e.msg}", code=e.code) from e

        logger.info("WhatsApp message sent", to=mask_phone(to), message_sid=message.sid)
        return message.sid
