# catalog_search/utils/locks.py
from __future__ import annotations
from typing import Optional
from redis.asyncio import Redis
import uuid

# release only if we still own the lock (it may have expired and been re-acquired)
_RELEASE_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
end
return 0
"""


class RedisLock:
    """
    Simple, single-instance lock using SET NX EX.
    Prevents two backfill runs from recomputing the same counters at once.
    """
    def __init__(self, redis: Redis, key: str, ttl: int = 300):
        self.redis = redis
        self.key = f"lock:{key}"
        self.ttl = ttl
        self._token: Optional[str] = None

    async def acquire(self) -> bool:
        token = uuid.uuid4().hex
        ok = await self.redis.set(self.key, token, nx=True, ex=self.ttl)
        if ok:
            self._token = token
            return True
        return False

    async def release(self) -> None:
        if self._token is None:
            return
        await self.redis.eval(_RELEASE_SCRIPT, 1, self.key, self._token)
        self._token = None
