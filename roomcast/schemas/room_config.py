"""Static room definition."""

from pydantic import BaseModel, ConfigDict, Field

from .enums import TransportMode


class RoomConfig(BaseModel):
    """A configured room owned by one of the initial users.

    Immutable: the registry hands the same values to every provisioning pass.
    Unknown keys are rejected so a misspelt activation flag fails loudly.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    room_id: int
    user_id: int
    user_name: str = ""

    name: str = ""
    desc: str = ""
    cover_img: str = ""
    weight: int = 0

    transport_mode: TransportMode = TransportMode.SELF_HOSTED
    auth_required: bool = False

    # Source media looped by the encoder
    local_file: str = ""

    # Whether an encoder process is spawned in each deployment environment
    activate_in_dev: bool = Field(default=False)
    activate_in_prod: bool = Field(default=False)
