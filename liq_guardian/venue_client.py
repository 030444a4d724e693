"""Client for the Hyperliquid public info endpoint."""

import logging
import time
from typing import Any, Dict, Optional

import httpx

from .config import Settings, settings as default_settings
from .models import AccountSnapshot, MarketContext
from .normalize import market_context_from_raw, snapshot_from_raw

logger = logging.getLogger(__name__)


class VenueError(Exception):
    """Raised when the info endpoint cannot be reached or answers with an error."""


class VenueClient:
    """Synchronous POST /info client with retry and backoff."""

    _MAX_RETRIES = 3
    _RETRY_BACKOFF_SECONDS = [0.5, 1, 2]

    def __init__(self, config: Optional[Settings] = None, http: Optional[httpx.Client] = None):
        self.settings = config or default_settings
        self.url = self.settings.hl_info_url
        self.http = http or httpx.Client(
            timeout=self.settings.hl_request_timeout_seconds,
            headers={"user-agent": "liq-guardian/monitor"},
        )

    def close(self):
        self.http.close()

    def info(self, body: Dict[str, Any]) -> Any:
        """POST a request body to the info endpoint and return the decoded JSON."""
        last_error = None
        for attempt in range(self._MAX_RETRIES):
            try:
                response = self.http.post(self.url, json=body)
                if response.status_code == 200:
                    return response.json()
                last_error = f"HL info {response.status_code}: {response.text[:200]}"
                logger.warning(last_error)
            except (httpx.HTTPError, ValueError) as e:
                last_error = str(e)
                logger.warning(
                    f"HL info request {body.get('type')} failed "
                    f"(attempt {attempt + 1}/{self._MAX_RETRIES}): {e}"
                )

            if attempt < self._MAX_RETRIES - 1:
                time.sleep(self._RETRY_BACKOFF_SECONDS[attempt])

        raise VenueError(f"HL info {body.get('type')} failed: {last_error}")

    def clearinghouse_state(self, address: str) -> Dict[str, Any]:
        return self.info({"type": "clearinghouseState", "user": address})

    def account_snapshot(self, address: str) -> AccountSnapshot:
        return snapshot_from_raw(self.clearinghouse_state(address))

    def market_context(self) -> MarketContext:
        """Marks and funding for every listed asset; empty on failure."""
        try:
            return market_context_from_raw(self.info({"type": "metaAndAssetCtxs"}))
        except VenueError as e:
            logger.warning(f"Failed to load marks and funding: {e}")
            return MarketContext()
