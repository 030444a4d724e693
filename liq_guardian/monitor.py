"""Liquidation Guardian - Main monitoring logic.

Every cycle each configured account is scored, tiered and passed through the
alert gate. Twice a day a status summary goes to the operator chat, and the
same reports are available on demand through Telegram commands.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set, Tuple

from .alerting.dispatcher import AlertDispatcher
from .alerting.telegram_client import TelegramClient
from .alerting.twilio_client import TwilioClient
from .config import Settings, settings as default_settings
from .gate import AlertGate, build_gate
from .models import AccountSnapshot
from .reporting import build_report, chunk_message
from .state_store import RedisStateStore
from .venue_client import VenueClient, VenueError

logger = logging.getLogger(__name__)

HELP_TEXT = "\n".join([
    "Commands:",
    "/status — per-account: 🔷 Cross (Leverage / Health), then 🟨 Isolated (coin / leverage / funding / health)",
    "/positions — same structure as /status",
    "/ping — check if bot is alive",
])


class LiquidationMonitor:
    """Evaluates account health on a fixed interval and gates near-liquidation alerts.

    Collaborators are created from the configuration unless passed in.
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        venue: Optional[VenueClient] = None,
        gate: Optional[AlertGate] = None,
        dispatcher: Optional[AlertDispatcher] = None,
        telegram: Optional[TelegramClient] = None,
        twilio: Optional[TwilioClient] = None,
    ):
        self.settings = config or default_settings
        self.store: Optional[RedisStateStore] = None
        if gate is None:
            self.store = RedisStateStore(self.settings)
            gate = build_gate(self.settings, self.store)
        self.gate = gate
        self.venue = venue or VenueClient(self.settings)
        self.telegram = telegram or TelegramClient(self.settings)
        self.twilio = twilio or TwilioClient(self.settings)
        self.dispatcher = dispatcher or AlertDispatcher(self.telegram, self.twilio)
        self._running = False
        self._stopped = False
        # (date, hour) slots whose daily status already went out
        self._daily_sent: Set[Tuple[str, int]] = set()

    def start(self):
        """Initialize connections and start monitoring."""
        logger.info("Starting Liquidation Guardian")

        if self.store is not None:
            self.store.connect()

        if self.settings.twilio_enabled:
            self.twilio.connect()

        self._running = True
        self._run_monitoring_loop()

    def stop(self):
        """Stop monitoring and cleanup all resources.

        Safe to call multiple times; the signal handler and the ``finally``
        block in ``main()`` may both invoke it.
        """
        if self._stopped:
            return
        self._stopped = True
        logger.info("Stopping Liquidation Guardian...")
        self._running = False
        if self.store is not None:
            self.store.close()
        self.venue.close()
        logger.info("Liquidation Guardian shutdown complete")

    # Number of consecutive monitoring-loop errors before sending a degraded alert.
    _ERROR_ALERT_THRESHOLD = 5

    def _run_monitoring_loop(self):
        """Main monitoring loop."""
        logger.info(f"Starting monitoring loop (interval: {self.settings.check_interval_seconds}s)")

        consecutive_errors = 0

        while self._running:
            try:
                self.run_cycle()

                if consecutive_errors > 0:
                    logger.info(
                        f"Monitoring loop recovered after {consecutive_errors} consecutive error(s)"
                    )
                consecutive_errors = 0

            except Exception as e:
                consecutive_errors += 1
                logger.error(
                    f"Error in monitoring loop (consecutive: {consecutive_errors}): {e}",
                    exc_info=True,
                )

                if consecutive_errors == self._ERROR_ALERT_THRESHOLD:
                    logger.critical(
                        f"Liquidation Guardian: {consecutive_errors} consecutive monitoring failures. "
                        f"Accounts are NOT being watched. Last error: {e}"
                    )
                    self.telegram.send_alert(
                        f"🚨 LIQUIDATION GUARDIAN DEGRADED\n\n"
                        f"{consecutive_errors} consecutive monitoring failures.\n"
                        f"Accounts are NOT being watched.\n\n"
                        f"Last error: {e}"
                    )

            time.sleep(self.settings.check_interval_seconds)

    def run_cycle(self, now: Optional[datetime] = None) -> int:
        """One periodic invocation: daily summary if due, then gated alerts.

        Returns:
            Number of alerts delivered
        """
        now = now or datetime.now(timezone.utc)

        self._maybe_send_daily_status(now)

        addresses = self.settings.addresses
        if not addresses:
            logger.debug("No addresses configured")
            return 0

        sent = 0
        for index, address in enumerate(addresses, start=1):
            try:
                if self._check_account(index, address, now):
                    sent += 1
            except Exception as e:
                logger.error(f"Error checking account {index} ({address}): {e}", exc_info=True)
                # continue to next account

        logger.debug(f"Checked {len(addresses)} accounts, {sent} alert(s) sent")
        return sent

    def _check_account(self, index: int, address: str, now: datetime) -> bool:
        """Evaluate one account and deliver its alert if the gate lets it through."""
        try:
            snapshot = self.venue.account_snapshot(address)
        except VenueError as e:
            logger.warning(f"Skipping account {index} ({address}) this cycle: {e}")
            return False

        decision = self.gate.evaluate(address, index, snapshot, now)
        if decision is None:
            return False

        if not decision.emit:
            # Non-alerting state changes (e.g. recorded recovery) still persist
            self.gate.commit(decision)
            return False

        if not self.dispatcher.send_near_liquidation(decision):
            # Leave state untouched so the next cycle retries the alert
            return False

        self.gate.commit(decision)
        logger.warning(
            f"ALERT: account {index} ({address}) near liquidation, "
            f"level {decision.tier}/{decision.max_tier}, health {decision.health_pct}"
        )
        return True

    def _maybe_send_daily_status(self, now: datetime) -> bool:
        if now.hour not in self.settings.daily_report_hours_utc:
            return False

        slot = (now.date().isoformat(), now.hour)
        if slot in self._daily_sent or not self.settings.addresses:
            return False

        self._daily_sent = {s for s in self._daily_sent if s[0] == slot[0]}
        self._daily_sent.add(slot)
        logger.info(f"Sending daily status for {slot[0]} {slot[1]:02d}:00 UTC")
        return self.telegram.send_chunked(self.status_report())

    def _load_accounts(self) -> List[Tuple[int, str, Optional[AccountSnapshot]]]:
        accounts = []
        for index, address in enumerate(self.settings.addresses, start=1):
            try:
                snapshot = self.venue.account_snapshot(address)
            except VenueError as e:
                logger.warning(f"No data for account {index} ({address}): {e}")
                snapshot = None
            accounts.append((index, address, snapshot))
        return accounts

    def status_report(self) -> str:
        market = self.venue.market_context()
        return "📅 <b>Daily Status</b>\n\n" + build_report(
            "📊 <b>Per-Account Overview</b>", self._load_accounts(), market
        )

    def positions_report(self) -> str:
        market = self.venue.market_context()
        return build_report("📄 <b>Per-Position Status</b>", self._load_accounts(), market)

    def handle_command(self, text: str) -> List[str]:
        """Reply chunks for a chat command; empty for anything unrecognized."""
        text = (text or "").strip()
        if text.startswith("/status"):
            return chunk_message(self.status_report())
        if text.startswith("/positions"):
            return chunk_message(self.positions_report())
        if text.startswith("/ping"):
            return ["pong"]
        if text.startswith("/help"):
            return [HELP_TEXT]
        return []

    def handle_update(self, update: Dict[str, Any]) -> None:
        """Process a Telegram webhook update and reply in the originating chat."""
        msg = update.get("message") or update.get("edited_message") or update.get("channel_post")
        if not isinstance(msg, dict):
            return

        chat = msg.get("chat") or {}
        chat_id = str(chat.get("id") or self.settings.telegram_chat_id or "")
        for chunk in self.handle_command(msg.get("text") or ""):
            self.telegram.send_message_sync(chunk, chat_id=chat_id)
