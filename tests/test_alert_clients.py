"""Tests for the Telegram and Twilio clients with transport mocked out."""

import unittest.mock

from liq_guardian.alerting.telegram_client import TelegramClient
from liq_guardian.alerting.twilio_client import TwilioClient
from liq_guardian.config import Settings


class TestTelegramClient:

    def setup_method(self):
        self.client = TelegramClient(Settings(telegram_bot_token="abc", telegram_chat_id="42"))

    def _patched_httpx(self, status_code=200):
        http = unittest.mock.MagicMock()
        http.__enter__.return_value = http
        http.post.return_value = unittest.mock.MagicMock(status_code=status_code, text="")
        return unittest.mock.patch("liq_guardian.alerting.telegram_client.httpx.Client", return_value=http), http

    def test_send_to_default_chat(self):
        patcher, http = self._patched_httpx()
        with patcher:
            assert self.client.send_alert("hello")
        payload = http.post.call_args[1]["json"]
        assert payload["chat_id"] == "42"
        assert payload["parse_mode"] == "HTML"
        assert payload["disable_web_page_preview"] is True
        assert http.post.call_args[0][0] == "https://api.telegram.org/botabc/sendMessage"

    def test_reply_to_other_chat(self):
        patcher, http = self._patched_httpx()
        with patcher:
            assert self.client.send_message_sync("pong", chat_id="777")
        assert http.post.call_args[1]["json"]["chat_id"] == "777"

    def test_retries_then_gives_up(self):
        patcher, http = self._patched_httpx(status_code=500)
        with patcher, unittest.mock.patch("liq_guardian.alerting.telegram_client.time.sleep"):
            assert not self.client.send_alert("hello")
        assert http.post.call_count == 3

    def test_chunked_sends_every_chunk(self):
        patcher, http = self._patched_httpx()
        text = "\n".join("x" * 100 for _ in range(100))
        with patcher:
            assert self.client.send_chunked(text, chat_id="42")
        assert http.post.call_count == 3

    def test_not_configured(self):
        client = TelegramClient(Settings(telegram_bot_token=None, telegram_chat_id=None))
        assert not client.send_alert("hello")


class TestTwilioClient:

    def test_disabled_without_credentials(self):
        client = TwilioClient(Settings())
        client.connect()
        assert client.send_sms("hi") is None

    def test_send_sms_truncates(self):
        config = Settings(
            twilio_account_sid="AC1",
            twilio_auth_token="tok",
            twilio_phone_number="+10000000000",
            alert_phone_number="+19999999999",
        )
        client = TwilioClient(config)
        client.client = unittest.mock.MagicMock()
        client.client.messages.create.return_value = unittest.mock.MagicMock(sid="SM1")

        assert client.send_sms("x" * 2000) == "SM1"
        kwargs = client.client.messages.create.call_args[1]
        assert len(kwargs["body"]) == 1500
        assert kwargs["to"] == "+19999999999"
