"""Telegram client for the operator chat."""

import logging
import time
from typing import Optional

import httpx

from ..config import Settings, settings as default_settings
from ..reporting import chunk_message

logger = logging.getLogger(__name__)


class TelegramClient:
    """Client for sending Telegram messages to the operator chat (or a replying chat)."""

    def __init__(self, config: Optional[Settings] = None):
        self.settings = config or default_settings
        self.bot_token = self.settings.telegram_bot_token
        self.chat_id = self.settings.telegram_chat_id
        self.enabled = bool(self.bot_token)
        self.base_url = f"https://api.telegram.org/bot{self.bot_token}"

    _MAX_RETRIES = 3
    _RETRY_BACKOFF_SECONDS = [1, 2, 4]

    def send_message_sync(
        self,
        message: str,
        chat_id: Optional[str] = None,
        parse_mode: str = "HTML",
    ) -> bool:
        """Send a message with exponential backoff retry.

        Args:
            message: Message text
            chat_id: Target chat, defaults to the configured operator chat
            parse_mode: 'HTML' or 'Markdown'

        Returns:
            True if successful
        """
        target = chat_id or self.chat_id
        if not self.enabled or not target:
            logger.warning("Telegram not configured")
            return False

        last_error = None
        for attempt in range(self._MAX_RETRIES):
            try:
                with httpx.Client() as client:
                    response = client.post(
                        f"{self.base_url}/sendMessage",
                        json={
                            "chat_id": target,
                            "text": message,
                            "parse_mode": parse_mode,
                            "disable_web_page_preview": True,
                        },
                        timeout=10.0,
                    )

                    if response.status_code == 200:
                        logger.debug("Telegram message sent")
                        return True
                    else:
                        last_error = f"Telegram API error: {response.status_code} - {response.text}"
                        logger.error(last_error)

            except Exception as e:
                last_error = str(e)
                logger.error(f"Failed to send Telegram message (attempt {attempt + 1}/{self._MAX_RETRIES}): {e}")

            if attempt < self._MAX_RETRIES - 1:
                delay = self._RETRY_BACKOFF_SECONDS[attempt]
                logger.info(f"Retrying Telegram send in {delay}s...")
                time.sleep(delay)

        logger.error(f"All {self._MAX_RETRIES} Telegram send attempts failed. Last error: {last_error}")
        return False

    def send_alert(self, alert_text: str) -> bool:
        """Send an alert to the operator chat."""
        return self.send_message_sync(alert_text, parse_mode="HTML")

    def send_chunked(self, text: str, chat_id: Optional[str] = None) -> bool:
        """Send a long report as several messages; True only if every chunk went out."""
        ok = True
        for chunk in chunk_message(text):
            ok = self.send_message_sync(chunk, chat_id=chat_id) and ok
        return ok
