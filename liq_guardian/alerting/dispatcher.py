"""Alert dispatcher: turns gate decisions into delivered messages."""

import logging
from typing import List

from ..models import AlertDecision
from ..reporting import format_near_liquidation, format_near_liquidation_sms
from .twilio_client import TwilioClient
from .telegram_client import TelegramClient

logger = logging.getLogger(__name__)


class AlertDispatcher:
    """Routes near-liquidation alerts to Telegram, plus SMS for the most severe tier."""

    def __init__(self, telegram_client: TelegramClient, twilio_client: TwilioClient):
        self.telegram = telegram_client
        self.twilio = twilio_client

    def send_near_liquidation(self, decision: AlertDecision) -> bool:
        """Deliver an emitting decision.

        Returns:
            True if at least one channel accepted the alert
        """
        channels: List[str] = []

        if self.telegram.send_alert(format_near_liquidation(decision)):
            channels.append("telegram")

        if decision.tier >= decision.max_tier and self.twilio.enabled:
            if self.twilio.send_sms(format_near_liquidation_sms(decision)) is not None:
                channels.append("sms")

        success = bool(channels)
        log_level = logging.INFO if success else logging.ERROR
        logger.log(
            log_level,
            f"Alert {'sent' if success else 'FAILED'}: level {decision.tier}/{decision.max_tier} "
            f"for account {decision.account_index} ({decision.address})"
            + (f" via {', '.join(channels)}" if channels else "")
        )
        return success
