"""LiveDatastore against a real MongoDB (skipped without MONGO_URL_ROOMCAST)."""

from unittest.mock import AsyncMock

import pytest

from roomcast.domain.live.provision._datastore import LiveDatastore
from roomcast.schemas import LiveRoom, LiveSession, LiveSessionStatus, TransportMode

pytestmark = pytest.mark.usefixtures("clear_collections")


@pytest.fixture
def cache():
    cache = AsyncMock()
    cache.invalidate = AsyncMock()
    return cache


async def test_update_room_upserts(beanie_db):
    datastore = LiveDatastore()

    await datastore.update_room(9, {"name": "Nine", "transport_mode": TransportMode.SELF_HOSTED})
    await datastore.update_room(9, {"push_rtmp_url": "rtmp://x/y"})

    rooms = await LiveRoom.find(LiveRoom.room_id == 9).to_list()
    assert len(rooms) == 1
    assert rooms[0].name == "Nine"
    assert rooms[0].push_rtmp_url == "rtmp://x/y"


async def test_find_room_secret(beanie_db):
    await LiveRoom(room_id=4, secret_key="s3cret").insert()
    datastore = LiveDatastore()

    assert await datastore.find_room_secret(4) == "s3cret"
    assert await datastore.find_room_secret(5) is None


async def test_session_lifecycle_invalidates_cache(beanie_db, cache):
    datastore = LiveDatastore(cache=cache)

    await datastore.create_session({"room_id": 4, "user_id": 40, "source_connection_id": "-1"})
    await datastore.create_session({"room_id": 4, "user_id": 40, "source_connection_id": "c1"})
    await datastore.update_sessions_by_room(4, {"status": LiveSessionStatus.PENDING})

    sessions = await datastore.find_sessions_by_room(4)
    assert {s.status for s in sessions} == {LiveSessionStatus.PENDING}

    assert await datastore.delete_sessions_by_room_and_connection(4, "c1") == 1
    assert await datastore.delete_sessions_by_room(4) == 1
    assert await LiveSession.find(LiveSession.room_id == 4).count() == 0
    assert cache.invalidate.await_count == 5
