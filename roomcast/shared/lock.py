import asyncio
import os
import random
import socket
import time
import uuid
from typing import Optional

from loguru import logger


def default_owner_id() -> str:
    """Generate a default owner id (host:pid:uuid8)."""
    return f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"


# Atomically release: only delete if value==owner
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""


class RoomLease:
    """Per-room lease backed by Redis (async).

    Serializes writers of a room's live-session rows (reconciliation and the
    relay's publish callbacks). Each successful acquire bumps a per-room
    fencing counter; the value is the generation a writer stamps on rows it
    creates, so a writer holding an older generation can detect it lost.
    """

    def __init__(
        self,
        redis_client,
        room_id: int,
        ttl: int = 30,
        owner: Optional[str] = None,
        prefix: str = "roomcast",
    ):
        self.redis_client = redis_client
        self.room_id = room_id
        self.ttl = int(ttl)
        self.owner = owner or default_owner_id()
        self.lock_key = f"{prefix}:lease:room:{room_id}"
        self.fence_key = f"{prefix}:fence:room:{room_id}"

        self.acquired: bool = False
        self.generation: Optional[int] = None

    async def acquire(
        self,
        blocking_timeout: Optional[float] = 10.0,
        retry_interval: float = 0.2,
        jitter: float = 0.1,
    ) -> bool:
        """
        Wait for the lease until `blocking_timeout` seconds have passed.

        `blocking_timeout=None` waits forever; `0` tries once.
        """
        self.generation = None
        deadline = None if blocking_timeout is None else time.monotonic() + blocking_timeout

        while True:
            if await self.redis_client.set(self.lock_key, self.owner, nx=True, ex=self.ttl):
                self.acquired = True
                break
            if deadline is not None and time.monotonic() >= deadline:
                self.acquired = False
                break
            sleep_for = retry_interval + random.uniform(0, max(jitter, 0))
            if deadline is not None:
                sleep_for = min(sleep_for, max(0.0, deadline - time.monotonic()))
            await asyncio.sleep(sleep_for)

        if not self.acquired:
            logger.warning("Failed to acquire room lease: key={} owner={}", self.lock_key, self.owner)
            return False

        try:
            self.generation = int(await self.redis_client.incr(self.fence_key))
        except Exception as e:
            # Never write without a generation
            logger.error("Failed to bump room generation: key={} err={}", self.fence_key, e)
            await self.release()
            return False

        logger.debug(
            "Acquired room lease: key={} owner={} generation={}",
            self.lock_key,
            self.owner,
            self.generation,
        )
        return True

    async def current_generation(self) -> int:
        value = await self.redis_client.get(self.fence_key)
        return int(value) if value else 0

    async def release(self) -> bool:
        if not self.acquired:
            return False
        try:
            res = await self.redis_client.eval(_RELEASE_LUA, 1, self.lock_key, self.owner)
        except Exception as e:
            logger.error("Error releasing room lease: key={} error={}", self.lock_key, e)
            return False
        self.acquired = False
        if res != 1:
            logger.warning("Room lease expired before release: key={} owner={}", self.lock_key, self.owner)
            return False
        logger.debug("Released room lease: key={} owner={}", self.lock_key, self.owner)
        return True

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.acquired:
            await self.release()

    def __bool__(self) -> bool:
        return self.acquired
