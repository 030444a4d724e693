"""Configuration for Liquidation Guardian service."""

import re
from typing import List, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings

_ADDRESS_RE = re.compile(r"0x[a-fA-F0-9]{40}")


class Settings(BaseSettings):
    """Liquidation Guardian configuration."""

    # Redis - alert gating state
    redis_host: str = Field(default="redis", alias="REDIS_HOST")
    redis_port: int = Field(default=6379, alias="REDIS_PORT")
    redis_db: int = Field(default=0, alias="REDIS_DB")
    redis_key_prefix: str = Field(default="liqguard:", alias="REDIS_KEY_PREFIX")

    # Telegram - operator channel
    telegram_bot_token: Optional[str] = Field(default=None, alias="TELEGRAM_BOT_TOKEN")
    telegram_chat_id: Optional[str] = Field(default=None, alias="TELEGRAM_CHAT_ID")

    # Twilio - SMS for the most severe tier (optional)
    twilio_account_sid: Optional[str] = Field(default=None, alias="TWILIO_ACCOUNT_SID")
    twilio_auth_token: Optional[str] = Field(default=None, alias="TWILIO_AUTH_TOKEN")
    twilio_phone_number: Optional[str] = Field(default=None, alias="TWILIO_PHONE_NUMBER")
    alert_phone_number: str = Field(default="", alias="ALERT_PHONE_NUMBER")

    # Venue
    hl_info_url: str = Field(default="https://api.hyperliquid.xyz/info", alias="HL_INFO_URL")
    hl_request_timeout_seconds: float = Field(default=10.0, alias="HL_REQUEST_TIMEOUT_SECONDS")
    addresses_csv: str = Field(default="", alias="ADDRESSES_CSV")  # "0xabc..., Team - 0xdef..."

    # Alert gating
    gating_policy: Literal["period", "cooldown"] = Field(default="period", alias="GATING_POLICY")
    tier_scheme: Literal["four_tier", "three_tier"] = Field(default="four_tier", alias="TIER_SCHEME")
    alert_cooldown_minutes: int = Field(default=30, alias="ALERT_COOLDOWN_MINUTES")
    state_ttl_seconds: int = Field(default=60 * 60 * 26, alias="STATE_TTL_SECONDS")  # ~26h survives clock skew

    # Monitoring
    check_interval_seconds: int = Field(default=60, alias="CHECK_INTERVAL_SECONDS")
    daily_report_hours_utc: List[int] = Field(default=[2, 14], alias="DAILY_REPORT_HOURS_UTC")
    health_port: int = Field(default=8080, alias="HEALTH_PORT")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @property
    def addresses(self) -> List[str]:
        return parse_address_book(self.addresses_csv)

    @property
    def twilio_enabled(self) -> bool:
        return all([self.twilio_account_sid, self.twilio_auth_token, self.twilio_phone_number, self.alert_phone_number])

    @property
    def telegram_enabled(self) -> bool:
        return all([self.telegram_bot_token, self.telegram_chat_id])

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }


def parse_address_book(csv: str) -> List[str]:
    """Extract unique 0x addresses from a comma-separated list, keeping order.

    Items may carry a label ("Team - 0x123..."); items without an address
    are ignored.
    """
    addresses: List[str] = []
    for item in (csv or "").split(","):
        match = _ADDRESS_RE.search(item.strip())
        if not match:
            continue
        addr = match.group(0)
        if addr not in addresses:
            addresses.append(addr)
    return addresses


settings = Settings()
