"""Static room registry.

Initial users and their rooms are declared under `initial_users` in
roomcast.yml:

    initial_users:
      systemUser1:
        id: 1
        live_room:
          id: 1
          name: Lobby
          transport_mode: self_hosted
          local_file: /media/lobby.mp4
          activate_in_dev: true
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from loguru import logger

from roomcast.schemas import RoomConfig
from roomcast.shared.config import custom_config


def load_rooms(initial_users: Mapping[str, Any]) -> tuple[RoomConfig, ...]:
    """Build the immutable room list from initial-user definitions.

    Users without a `live_room` are ignored. Duplicate room ids are an error.
    """
    rooms: list[RoomConfig] = []
    seen: set[int] = set()
    for user_name, user in initial_users.items():
        live_room = (user or {}).get("live_room")
        if not live_room:
            logger.debug(f"Initial user {user_name} has no live room")
            continue
        room = RoomConfig(
            room_id=live_room["id"],
            user_id=user["id"],
            user_name=user_name,
            **{k: v for k, v in live_room.items() if k != "id"},
        )
        if room.room_id in seen:
            raise ValueError(f"Duplicate room id {room.room_id} (user {user_name})")
        seen.add(room.room_id)
        rooms.append(room)
    return tuple(sorted(rooms, key=lambda r: (-r.weight, r.room_id)))


def get_configured_rooms() -> tuple[RoomConfig, ...]:
    return load_rooms(custom_config.get_initial_users())
