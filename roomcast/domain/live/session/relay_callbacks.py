"""Relay publish/unpublish callbacks.

The relay server reports publishers joining and leaving. For self-hosted
rooms these callbacks, not reconciliation, create the live-session row.
Both share the per-room lease with reconciliation so a callback cannot land
between its delete and create for the same room.

The HTTP endpoint that receives the relay's hooks lives outside this
package; it parses the body into `RelayHookPayload` and calls
`RelayCallbackHandler.on_publish` or `on_unpublish`.
"""

from __future__ import annotations

from collections.abc import Callable
from contextlib import AsyncExitStack
from typing import Any

from loguru import logger

from roomcast.domain.live.provision._datastore import LiveDatastore
from roomcast.domain.live.relay.relay_sessions import parse_room_id
from roomcast.schemas import LiveSessionStatus
from roomcast.services.relay.relay_schemas import RelayHookPayload
from roomcast.shared.lock import RoomLease


class RelayCallbackHandler:
    def __init__(
        self,
        datastore: LiveDatastore,
        lease_factory: Callable[[int], RoomLease] | None = None,
    ):
        self.datastore = datastore
        self.lease_factory = lease_factory

    def _relay_fields(self, payload: RelayHookPayload) -> dict[str, Any]:
        return {
            "source_connection_id": payload.client_id,
            "relay_client_id": payload.client_id,
            "relay_app": payload.app,
            "relay_stream": payload.stream,
            "relay_ip": payload.ip,
            "relay_vhost": payload.vhost,
            "relay_param": payload.param,
            "relay_server_id": payload.server_id,
            "relay_stream_url": payload.stream_url,
            "relay_tc_url": payload.tc_url,
        }

    async def on_publish(self, payload: RelayHookPayload) -> bool:
        """Record the publisher on the room's session row.

        Returns False when the stream is not one of ours, the lease could not
        be taken, or a newer writer took the room meanwhile.
        """
        room_id = parse_room_id(payload.stream)
        if room_id is None:
            logger.warning(f"⚠️ on_publish for foreign stream {payload.stream!r}, ignored")
            return False

        async with AsyncExitStack() as stack:
            generation = None
            lease = None
            if self.lease_factory is not None:
                lease = await stack.enter_async_context(self.lease_factory(room_id))
                if not await lease.acquire():
                    logger.error(f"❌ on_publish room {room_id}: lease busy")
                    return False
                generation = lease.generation

            fields = {
                **self._relay_fields(payload),
                "status": LiveSessionStatus.LIVE,
                "generation": generation,
            }
            existing = await self.datastore.find_sessions_by_room(room_id)

            if lease is not None and await lease.current_generation() != generation:
                logger.warning(f"⚠️ on_publish room {room_id}: generation {generation} is stale, discarded")
                return False

            if existing:
                await self.datastore.update_sessions_by_room(room_id, fields)
            else:
                await self.datastore.create_session({"room_id": room_id, **fields})

        logger.info(f"✅ Room {room_id} publishing via relay client {payload.client_id}")
        return True

    async def on_unpublish(self, payload: RelayHookPayload) -> int:
        """Remove the session rows of the publisher that left."""
        room_id = parse_room_id(payload.stream)
        if room_id is None:
            return 0

        async with AsyncExitStack() as stack:
            if self.lease_factory is not None:
                lease = await stack.enter_async_context(self.lease_factory(room_id))
                if not await lease.acquire():
                    logger.error(f"❌ on_unpublish room {room_id}: lease busy")
                    return 0
            deleted = await self.datastore.delete_sessions_by_room_and_connection(
                room_id, payload.client_id
            )

        logger.info(f"Room {room_id} unpublished by {payload.client_id}, removed {deleted} sessions")
        return deleted
