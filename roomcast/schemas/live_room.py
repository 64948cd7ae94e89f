"""LiveRoom ODM schema."""

from datetime import datetime, timezone
from typing import Any

from beanie import Document, Indexed
from pydantic import Field, field_validator

from .enums import RoomType, TransportMode
from .schema_utils import parse_mongo_datetime


class LiveRoom(Document):
    """Live room document model."""

    room_id: Indexed(int, unique=True)  # type: ignore[valid-type]
    user_id: int | None = None

    # Room descriptor fields
    name: str = ""
    desc: str = ""
    cover_img: str = ""
    weight: int = 0

    transport_mode: TransportMode = TransportMode.SELF_HOSTED
    auth_required: bool = False
    room_type: RoomType = RoomType.USER

    # Push authentication for the self-hosted relay
    secret_key: str | None = None

    # Push URLs
    push_rtmp_url: str = ""
    push_obs_server: str = ""
    push_obs_stream_key: str = ""
    push_webrtc_url: str = ""
    push_srt_url: str = ""

    # Pull URLs
    pull_rtmp_url: str = ""
    pull_flv_url: str = ""
    pull_hls_url: str = ""
    pull_webrtc_url: str = ""

    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("updated_at", mode="before")
    @classmethod
    def _parse_datetime(cls, v: Any) -> Any:
        return parse_mongo_datetime(v)

    class Settings:
        name = "live_room"
