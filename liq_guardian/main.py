"""Liquidation Guardian - Entry Point.

This service watches a list of Hyperliquid accounts for:
1. Cross-margin health dropping through alert tiers → gated Telegram alerts
2. The most severe tier → SMS as well, when Twilio is configured
3. Twice-daily status summaries and /status, /positions on demand
"""

import json
import logging
import signal
import sys
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer

from .config import settings
from .monitor import LiquidationMonitor

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout),
    ],
)

logger = logging.getLogger(__name__)

# Global monitor instance for signal handling
monitor: LiquidationMonitor = None


def signal_handler(signum, frame):
    """Handle shutdown signals gracefully."""
    logger.info(f"Received signal {signum}, shutting down...")
    if monitor:
        monitor.stop()
    sys.exit(0)


def _start_http_server(target: LiquidationMonitor) -> None:
    """Serve /health and the Telegram webhook (/tg) on a daemon thread."""
    port = settings.health_port

    class _Handler(BaseHTTPRequestHandler):
        def do_GET(self):
            if self.path in ("/", "/health"):
                self.send_response(200)
                self.end_headers()
                self.wfile.write(b"ok")
            else:
                self.send_response(404)
                self.end_headers()

        def do_POST(self):
            if self.path != "/tg":
                self.send_response(404)
                self.end_headers()
                return

            try:
                length = int(self.headers.get("Content-Length") or 0)
                update = json.loads(self.rfile.read(length) or b"{}")
                if isinstance(update, dict):
                    target.handle_update(update)
            except Exception as e:
                logger.error(f"Webhook error: {e}", exc_info=True)

            # Always 200 so Telegram does not redeliver
            self.send_response(200)
            self.end_headers()
            self.wfile.write(b"ok")

        def log_message(self, *args):
            pass  # suppress HTTP access logs

    server = HTTPServer(("", port), _Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    logger.info(f"HTTP server listening on :{port} (/health, /tg)")


def main():
    """Main entry point."""
    global monitor

    logger.info("=" * 60)
    logger.info("LIQUIDATION GUARDIAN")
    logger.info("=" * 60)

    # Log configuration
    logger.info(f"Venue: {settings.hl_info_url}")
    logger.info(f"Redis: {settings.redis_host}:{settings.redis_port}")
    logger.info(f"Accounts: {len(settings.addresses)}")
    logger.info(f"Gating policy: {settings.gating_policy} (tiers: {settings.tier_scheme})")
    if settings.gating_policy == "cooldown":
        logger.info(f"Alert cooldown: {settings.alert_cooldown_minutes}min")
    logger.info(f"Telegram enabled: {settings.telegram_enabled}")
    logger.info(f"Twilio enabled: {settings.twilio_enabled}")
    logger.info(f"Check interval: {settings.check_interval_seconds}s")
    logger.info(f"Daily status hours (UTC): {settings.daily_report_hours_utc}")

    # Setup signal handlers
    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    monitor = LiquidationMonitor(settings)
    _start_http_server(monitor)

    try:
        monitor.start()
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)
    finally:
        if monitor:
            monitor.stop()


if __name__ == "__main__":
    main()
