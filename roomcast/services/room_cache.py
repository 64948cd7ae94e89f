from loguru import logger

ROOM_LIST_CACHE_KEY = "roomcast:cache:room-list"


class RoomListCache:
    """Cached room/live-session listing read by room-list consumers.

    Every LiveSession mutation drops the entry so readers never see a
    stale session list.
    """

    def __init__(self, redis_client, key: str = ROOM_LIST_CACHE_KEY):
        self.redis_client = redis_client
        self.key = key

    async def invalidate(self) -> None:
        # A failed invalidation must not undo the mutation it follows
        try:
            await self.redis_client.delete(self.key)
        except Exception as e:
            logger.warning(f"Failed to invalidate {self.key}: {type(e).__name__}: {e}")
