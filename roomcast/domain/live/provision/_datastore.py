"""MongoDB persistence for rooms and live sessions used by provisioning."""

from __future__ import annotations

from typing import Any

from beanie.odm.operators.update.general import Set
from loguru import logger

from roomcast.schemas import LiveRoom, LiveSession
from roomcast.services.room_cache import RoomListCache
from roomcast.shared.domain.time_utils import utc_now


class LiveDatastore:
    """Room and live-session persistence.

    Every LiveSession mutation invalidates the room-list cache.
    """

    def __init__(self, cache: RoomListCache | None = None):
        self.cache = cache

    async def _invalidate(self) -> None:
        if self.cache is not None:
            await self.cache.invalidate()

    async def find_room_secret(self, room_id: int) -> str | None:
        room = await LiveRoom.find_one(LiveRoom.room_id == room_id)
        return room.secret_key if room else None

    async def update_room(self, room_id: int, fields: dict[str, Any]) -> None:
        """Write `fields` onto the room, creating the row if missing."""
        fields = {**fields, "updated_at": utc_now()}
        await LiveRoom.find_one(LiveRoom.room_id == room_id).upsert(
            Set(fields),
            on_insert=LiveRoom(room_id=room_id, **fields),
        )
        logger.debug(f"Room {room_id} updated: {sorted(fields)}")

    async def find_sessions_by_room(self, room_id: int) -> list[LiveSession]:
        return await LiveSession.find(LiveSession.room_id == room_id).to_list()

    async def create_session(self, fields: dict[str, Any]) -> LiveSession:
        session = LiveSession(**fields)
        await session.insert()
        await self._invalidate()
        logger.debug(f"LiveSession created for room {session.room_id} id={session.id}")
        return session

    async def update_sessions_by_room(self, room_id: int, fields: dict[str, Any]) -> int:
        fields = {**fields, "updated_at": utc_now()}
        result = await LiveSession.find(LiveSession.room_id == room_id).update(Set(fields))
        await self._invalidate()
        return result.modified_count if result else 0

    async def delete_sessions_by_room(self, room_id: int) -> int:
        result = await LiveSession.find(LiveSession.room_id == room_id).delete()
        await self._invalidate()
        deleted = result.deleted_count if result else 0
        logger.debug(f"Deleted {deleted} LiveSession rows for room {room_id}")
        return deleted

    async def delete_sessions_by_room_and_connection(self, room_id: int, connection_id: str) -> int:
        result = await LiveSession.find(
            LiveSession.room_id == room_id,
            LiveSession.source_connection_id == connection_id,
        ).delete()
        await self._invalidate()
        return result.deleted_count if result else 0
