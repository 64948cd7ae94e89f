"""Mux helper service.

Thin wrapper around the `mux-python` package covering what CDN rooms need:
finding the live stream bound to a room, ending its current upstream
session, and the ingest/playback base URLs.

Rooms are bound to a Mux live stream through the stream's `passthrough`
value (see `room_passthrough`).

Usage:
    from roomcast.services.integrations.mux_service import mux_service

    stream = mux_service.find_live_stream_by_passthrough(room_passthrough(7))
    mux_service.signal_live_stream_complete(stream.id)
"""

from __future__ import annotations

import mux_python
from loguru import logger
from mux_python.exceptions import NotFoundException as MuxNotFoundException
from pydantic import BaseModel, Field

from roomcast.app_config import AppEnvironConfig, ProjectEnv, get_app_environ_config
from roomcast.utils.app_errors import AppError, AppErrorCode


def room_passthrough(room_id: int) -> str:
    return f"roomcast-room-{room_id}"


class MuxPlaybackId(BaseModel):
    """Mux playback ID model."""

    id: str
    policy: str


class MuxLiveStream(BaseModel):
    """Mux live stream data model."""

    id: str
    stream_key: str
    status: str
    playback_ids: list[MuxPlaybackId] = Field(default_factory=list)
    passthrough: str | None = None
    srt_passphrase: str | None = None

    @property
    def public_playback_id(self) -> str | None:
        for pb in self.playback_ids:
            if pb.policy == "public":
                return pb.id
        return self.playback_ids[0].id if self.playback_ids else None


def _to_live_stream(mux_data) -> MuxLiveStream:
    playback_ids = [
        MuxPlaybackId(id=pb.id, policy=pb.policy)  # type: ignore[attr-defined]
        for pb in (mux_data.playback_ids or [])
    ]
    return MuxLiveStream(
        id=mux_data.id,
        stream_key=mux_data.stream_key,
        status=mux_data.status,
        playback_ids=playback_ids,
        passthrough=mux_data.passthrough,
        srt_passphrase=getattr(mux_data, "srt_passphrase", None),
    )


class MuxService:
    """Service wrapper for Mux Video API (mux-python package)."""

    def __init__(self, cfg: AppEnvironConfig | None = None) -> None:
        self._cfg = cfg or get_app_environ_config()
        self._demo_mode = bool(getattr(self._cfg, "DEMO_MODE", False))
        self._configuration: mux_python.Configuration | None = None
        self._live_api: mux_python.LiveStreamsApi | None = None
        logger.info("MuxService initialized")

    @property
    def rtmp_ingest_base_url(self) -> str:
        return self._cfg.MUX_RTMP_INGEST_BASE_URL.rstrip("/")

    @property
    def srt_ingest_base_url(self) -> str:
        return self._cfg.MUX_SRT_INGEST_BASE_URL.rstrip("/")

    @property
    def stream_base_url(self) -> str:
        return self._cfg.MUX_STREAM_BASE_URL.rstrip("/")

    def _demo_stubs_allowed(self) -> bool:
        """Whether calls may be answered with stubs instead of the Mux API.

        Raises:
            AppError: E_PROVIDER_CALL_FAILED if DEMO_MODE is set in prod, where a
                stubbed binding would be persisted as a real one.
        """
        if not self._demo_mode:
            return False
        if self._cfg.PROJECT_ENV == ProjectEnv.PROD:
            raise AppError(
                AppErrorCode.E_PROVIDER_CALL_FAILED,
                "DEMO_MODE cannot be used with PROJECT_ENV=prod",
            )
        return True

    def _get_configuration(self) -> mux_python.Configuration:
        """Get or create Mux configuration with credentials.

        Raises:
            AppError: If MUX_TOKEN_ID or MUX_TOKEN_SECRET is not configured
        """
        if self._configuration is None:
            token_id = self._cfg.MUX_TOKEN_ID
            token_secret = self._cfg.MUX_TOKEN_SECRET

            if not token_id or not token_secret:
                logger.error("MUX_TOKEN_ID or MUX_TOKEN_SECRET not configured")
                raise AppError(
                    AppErrorCode.E_PROVIDER_CALL_FAILED,
                    "Streaming provider credentials must be configured. Set them in env.local or environment variables.",
                )

            self._configuration = mux_python.Configuration()
            self._configuration.username = token_id
            self._configuration.password = token_secret
            logger.info("Mux configuration created")

        return self._configuration

    def _get_live_api(self) -> mux_python.LiveStreamsApi:
        if self._live_api is None:
            config = self._get_configuration()
            self._live_api = mux_python.LiveStreamsApi(mux_python.ApiClient(config))
            logger.info("Mux LiveStreamsApi client created")
        return self._live_api

    def find_live_stream_by_passthrough(self, passthrough: str) -> MuxLiveStream | None:
        """Find the live stream whose passthrough matches.

        Pages through the account's live streams until a match is found.

        Raises:
            ApiException: If API request fails
        """
        if self._demo_stubs_allowed():
            logger.info("MuxService DEMO_MODE=true: returning stubbed live stream")
            return MuxLiveStream(
                id=f"ls_demo_{passthrough}",
                stream_key="sk_demo_redacted",
                status="idle",
                playback_ids=[MuxPlaybackId(id="pb_demo_001", policy="public")],
                passthrough=passthrough,
            )

        live_api = self._get_live_api()
        limit = self._cfg.MUX_LIST_PAGE_LIMIT
        page = 1
        while True:
            response = live_api.list_live_streams(limit=limit, page=page)
            streams = response.data or []  # type: ignore[attr-defined]
            for mux_data in streams:
                if mux_data.passthrough == passthrough:
                    result = _to_live_stream(mux_data)
                    logger.info(
                        f"Found Mux live stream id={result.id} status={result.status} for {passthrough}"
                    )
                    return result
            if len(streams) < limit:
                return None
            page += 1

    def signal_live_stream_complete(self, stream_id: str) -> None:
        """Signal that a live stream is complete.

        Ends the stream's current upstream session. Idempotent: a missing
        stream is treated as success.

        Raises:
            ApiException: If API request fails (except 404 Not Found)
        """
        if self._demo_stubs_allowed():
            logger.info("MuxService DEMO_MODE=true: signal_live_stream_complete is a no-op")
            return

        live_api = self._get_live_api()
        logger.info(f"Signaling Mux live stream complete id={stream_id}")
        try:
            live_api.signal_live_stream_complete(stream_id)
            logger.info(f"Signaled Mux live stream complete id={stream_id}")
        except MuxNotFoundException:
            logger.info(f"Mux live stream not found (already deleted/completed) id={stream_id}")


# Module-level singleton
mux_service = MuxService()
