"""Tests for the static room registry."""

import pytest
from pydantic import ValidationError

from roomcast.domain.live.room.room_registry import get_configured_rooms, load_rooms
from roomcast.schemas import TransportMode


def test_builds_sorted_immutable_rooms():
    rooms = load_rooms(
        {
            "systemUser1": {"id": 1, "live_room": {"id": 10, "name": "A", "weight": 1}},
            "systemUser2": {"id": 2, "live_room": {"id": 20, "name": "B", "weight": 9, "transport_mode": "cdn"}},
            "plainUser": {"id": 3},
        }
    )

    assert isinstance(rooms, tuple)
    assert [r.room_id for r in rooms] == [20, 10]
    assert rooms[0].transport_mode == TransportMode.CDN
    assert rooms[0].user_name == "systemUser2"
    with pytest.raises(Exception):
        rooms[0].weight = 0  # type: ignore[misc]


def test_duplicate_room_id_rejected():
    with pytest.raises(ValueError):
        load_rooms(
            {
                "u1": {"id": 1, "live_room": {"id": 10}},
                "u2": {"id": 2, "live_room": {"id": 10}},
            }
        )


def test_repository_config_loads():
    rooms = get_configured_rooms()

    assert {r.room_id for r in rooms} == {1, 2, 3}
    assert next(r for r in rooms if r.room_id == 2).transport_mode == TransportMode.CDN


def test_misspelt_room_key_rejected():
    with pytest.raises(ValidationError):
        load_rooms({"u1": {"id": 1, "live_room": {"id": 10, "activate_in_prd": True}}})
