"""LiveSession ODM schema."""

from datetime import datetime, timezone
from typing import Any

from beanie import Document, Indexed
from pydantic import Field, field_validator

from .enums import LiveSessionStatus
from .schema_utils import parse_mongo_datetime

# Connection id for streams pushed outside the relay (no publish callback will arrive)
EXTERNAL_SOURCE_CONNECTION_ID = "-1"


class LiveSession(Document):
    """One row asserts that a room is currently being pushed."""

    room_id: Indexed(int)  # type: ignore[valid-type]
    user_id: int | None = None
    source_connection_id: str = EXTERNAL_SOURCE_CONNECTION_ID

    audio_track_present: bool = False
    video_track_present: bool = False

    status: LiveSessionStatus = LiveSessionStatus.LIVE

    # Fencing token of the room lease the row was written under
    generation: int | None = None

    # Reported by the relay publish callback
    relay_client_id: str | None = None
    relay_app: str | None = None
    relay_stream: str | None = None
    relay_ip: str | None = None
    relay_vhost: str | None = None
    relay_param: str | None = None
    relay_server_id: str | None = None
    relay_stream_url: str | None = None
    relay_tc_url: str | None = None

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _parse_datetime(cls, v: Any) -> Any:
        """Parse MongoDB Extended JSON datetime format."""
        return parse_mongo_datetime(v)

    class Settings:
        name = "live_session"
        indexes = [
            "room_id",
            "source_connection_id",
        ]
