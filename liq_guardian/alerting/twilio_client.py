"""Twilio client for SMS alerts on the most severe tier."""

import logging
from typing import Optional

from twilio.rest import Client
from twilio.base.exceptions import TwilioRestException

from ..config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class TwilioClient:
    """Client for sending SMS via Twilio."""

    def __init__(self, config: Optional[Settings] = None):
        self.settings = config or default_settings
        self.client: Optional[Client] = None
        self.enabled = self.settings.twilio_enabled

    def connect(self):
        """Initialize Twilio client."""
        if not self.enabled:
            logger.warning("Twilio not configured - SMS alerts disabled")
            return

        try:
            self.client = Client(
                self.settings.twilio_account_sid,
                self.settings.twilio_auth_token,
            )
            # Verify credentials by fetching account info
            account = self.client.api.accounts(self.settings.twilio_account_sid).fetch()
            logger.info(f"Twilio connected - Account: {account.friendly_name}")
        except TwilioRestException as e:
            logger.error(f"Failed to connect to Twilio: {e}")
            self.enabled = False
            raise

    def send_sms(self, message: str) -> Optional[str]:
        """Send an SMS message.

        Returns:
            Twilio message SID if successful, None otherwise
        """
        if not self.enabled or not self.client:
            logger.warning("Twilio not enabled, cannot send SMS")
            return None

        try:
            # SMS limit is 1600 chars for concatenated messages
            if len(message) > 1500:
                message = message[:1497] + "..."

            msg = self.client.messages.create(
                body=message,
                from_=self.settings.twilio_phone_number,
                to=self.settings.alert_phone_number,
            )

            logger.info(f"SMS sent: {msg.sid}")
            return msg.sid

        except TwilioRestException as e:
            logger.error(f"Failed to send SMS: {e}")
            return None
