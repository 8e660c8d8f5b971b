import json
import logging
from typing import Any, Dict, Optional

import redis.asyncio as redis

from hrassess.core.config import settings

logger = logging.getLogger(__name__)

SETTINGS_SNAPSHOT_KEY = "settings:snapshot"


class SettingsCache:
    """Redis copy of the decoded settings snapshot.

    Errors are logged and reported as a cache miss so reads fall back to the
    database.
    """

    def __init__(self, client: Optional[redis.Redis] = None, ttl: int = settings.SETTINGS_CACHE_TTL):
        self.redis = client
        self.ttl = ttl

    async def connect(self, url: str = settings.REDIS_URL):
        """Initialize Redis connection pool."""
        if self.redis is None:
            self.redis = redis.from_url(url, encoding="utf-8", decode_responses=True)

    async def disconnect(self):
        """Close Redis connection."""
        if self.redis is not None:
            await self.redis.aclose()
            self.redis = None

    async def get_snapshot(self) -> Optional[Dict[str, Any]]:
        if self.redis is None:
            return None
        try:
            raw = await self.redis.get(SETTINGS_SNAPSHOT_KEY)
        except redis.RedisError as e:
            logger.error(f"Cache get error: {e}")
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Discarding unreadable settings snapshot in cache")
            return None

    async def set_snapshot(self, snapshot: Dict[str, Any]) -> bool:
        if self.redis is None:
            return False
        try:
            return bool(await self.redis.set(SETTINGS_SNAPSHOT_KEY, json.dumps(snapshot), ex=self.ttl))
        except redis.RedisError as e:
            logger.error(f"Cache set error: {e}")
            return False

    async def invalidate(self) -> None:
        if self.redis is None:
            return
        try:
            await self.redis.delete(SETTINGS_SNAPSHOT_KEY)
        except redis.RedisError as e:
            logger.error(f"Cache delete error: {e}")
