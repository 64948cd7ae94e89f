from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class RelayClientInfo(BaseModel):
    """A publisher or viewer connected to the relay server.

    Mirrors one entry of the relay's `/api/v1/clients` listing; unknown
    fields are ignored.
    """

    id: str = Field(..., description="Relay-assigned client id")
    vhost: str | None = None
    stream: str | None = None
    ip: str | None = None
    type: str | None = None
    publish: bool | None = None
    alive: float | None = Field(default=None, description="Seconds since connect")
    page_url: str | None = Field(
        default=None,
        alias="pageUrl",
        validation_alias=AliasChoices("pageUrl", "page_url"),
    )

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class RelayClientsResponse(BaseModel):
    code: int = 0
    server: str | None = None
    clients: list[RelayClientInfo] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


class RelayAckResponse(BaseModel):
    code: int = 0

    model_config = ConfigDict(extra="ignore")


class RelayHookPayload(BaseModel):
    """Body of the relay's on_publish / on_unpublish HTTP callbacks."""

    action: str
    client_id: str
    ip: str | None = None
    vhost: str | None = None
    app: str | None = None
    stream: str = ""
    param: str | None = None
    server_id: str | None = None
    stream_url: str | None = None
    tc_url: str | None = Field(
        default=None,
        alias="tcUrl",
        validation_alias=AliasChoices("tcUrl", "tc_url"),
    )

    model_config = ConfigDict(populate_by_name=True, extra="ignore")
