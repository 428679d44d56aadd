"""Advisory sweep lock backed by a Redis key with a TTL.

Overlapping sweeps are harmless but waste deletion attempts, so a sweep
takes this lock first. The TTL frees the lock if its holder dies. When
Redis is unreachable the sweep runs unlocked.
"""

from __future__ import annotations

import logging
import secrets

import redis.asyncio as aioredis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

# Delete the key only if we still own it
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class SweepLock:
    """A "sweep in progress" flag with a timeout."""

    def __init__(self, client: aioredis.Redis, key: str, ttl_seconds: int) -> None:
        self.client = client
        self.key = key
        self.ttl_seconds = ttl_seconds
        self._token: str | None = None

    async def acquire(self) -> bool:
        """Take the lock. Returns False if another sweep holds it."""
        token = secrets.token_hex(16)
        try:
            acquired = await self.client.set(self.key, token, nx=True, ex=self.ttl_seconds)
        except RedisError:
            logger.warning("Sweep lock unavailable, running unlocked", exc_info=True)
            self._token = None
            return True

        if not acquired:
            logger.info("Sweep lock %s held elsewhere", self.key)
            return False
        self._token = token
        return True

    async def release(self) -> None:
        if self._token is None:
            return
        token, self._token = self._token, None
        try:
            await self.client.eval(_RELEASE_SCRIPT, 1, self.key, token)
        except RedisError:
            logger.warning("Could not release sweep lock %s; it expires in %ds", self.key, self.ttl_seconds)
