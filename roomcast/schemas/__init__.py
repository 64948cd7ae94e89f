"""Schemas: Beanie documents for MongoDB collections and value models."""

from .enums import LiveSessionStatus, RoomType, TransportMode
from .init import DOCUMENT_MODELS, init_beanie_odm
from .live_room import LiveRoom
from .live_session import EXTERNAL_SOURCE_CONNECTION_ID, LiveSession
from .room_config import RoomConfig
from .url_set import UrlSet

__all__ = [
    "DOCUMENT_MODELS",
    "EXTERNAL_SOURCE_CONNECTION_ID",
    "LiveRoom",
    "LiveSession",
    "LiveSessionStatus",
    "RoomConfig",
    "RoomType",
    "TransportMode",
    "UrlSet",
    "init_beanie_odm",
]
