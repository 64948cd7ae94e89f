"""Common enums used across schemas."""

from enum import Enum


class TransportMode(str, Enum):
    """How a room's stream reaches consumers.

    - SELF_HOSTED: pushed into our own relay server; URLs derived from the room's secret key.
    - CDN: pushed into the cloud live-streaming provider; URLs derived from provider values.
    """

    SELF_HOSTED = "self_hosted"
    CDN = "cdn"

    def __str__(self) -> str:
        return self.value


class RoomType(str, Enum):
    SYSTEM = "system"
    USER = "user"

    def __str__(self) -> str:
        return self.value


class LiveSessionStatus(str, Enum):
    """LiveSession status.

    - LIVE: the room is being pushed.
    - PENDING: a push was requested but the encoder failed to start.
    """

    LIVE = "live"
    PENDING = "pending"

    def __str__(self) -> str:
        return self.value
