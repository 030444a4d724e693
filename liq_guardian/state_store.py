"""Redis-backed key -> JSON store with per-key expiry for alert gating state."""

import json
import logging
from typing import Any, Dict, Optional

import redis

from .config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class StateStore:
    """Minimal interface the alert gate relies on.

    Implementations must never raise from ``get``/``put``: a store that is
    down reads as "no prior state" so alerting stays available.
    """

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def put(self, key: str, value: Dict[str, Any], ttl_seconds: Optional[int] = None) -> None:
        raise NotImplementedError


class RedisStateStore(StateStore):
    """StateStore on top of plain Redis strings (GET / SET EX)."""

    def __init__(self, config: Optional[Settings] = None, client: Optional[redis.Redis] = None):
        self.settings = config or default_settings
        self.client: Optional[redis.Redis] = client
        self.prefix = self.settings.redis_key_prefix

    def connect(self):
        """Establish Redis connection."""
        try:
            self.client = redis.Redis(
                host=self.settings.redis_host,
                port=self.settings.redis_port,
                db=self.settings.redis_db,
                decode_responses=True,
            )
            # Test connection
            self.client.ping()
            logger.info("Connected to Redis")
        except Exception as e:
            logger.error(f"Failed to connect to Redis: {e}")
            raise

    def close(self):
        """Close Redis connection."""
        if self.client:
            self.client.close()
            self.client = None

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        if self.client is None:
            logger.warning(f"Redis not connected, treating {key} as empty")
            return None
        try:
            data_str = self.client.get(self.prefix + key)
        except redis.RedisError as e:
            logger.warning(f"Failed to read state {key} from Redis: {e}")
            return None

        if not data_str:
            return None

        try:
            value = json.loads(data_str)
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring unparseable state for {key}: {e}")
            return None
        return value if isinstance(value, dict) else None

    def put(self, key: str, value: Dict[str, Any], ttl_seconds: Optional[int] = None) -> None:
        if self.client is None:
            logger.warning(f"Redis not connected, state {key} not persisted")
            return
        try:
            self.client.set(self.prefix + key, json.dumps(value), ex=ttl_seconds or None)
        except redis.RedisError as e:
            logger.warning(f"Failed to persist state {key} to Redis: {e}")
