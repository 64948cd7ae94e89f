"""CDN provisioning strategy backed by Mux live streams."""

from __future__ import annotations

import asyncio

from loguru import logger

from roomcast.schemas import UrlSet
from roomcast.services.integrations.mux_service import (
    MuxLiveStream,
    MuxService,
    mux_service,
    room_passthrough,
)
from roomcast.utils.app_errors import AppError, AppErrorCode


class CdnStrategy:
    """Talks to the cloud provider on behalf of CDN rooms.

    `query_state` caches the provider's stream metadata per room so the URL
    derivations that follow need no further round-trip.
    """

    def __init__(self, mux: MuxService | None = None):
        self.mux = mux or mux_service
        self._streams: dict[int, MuxLiveStream] = {}

    async def drop_existing(self, room_id: int) -> None:
        """End any upstream session bound to the room. Best effort."""
        try:
            stream = await asyncio.to_thread(
                self.mux.find_live_stream_by_passthrough, room_passthrough(room_id)
            )
            if stream is None:
                logger.debug(f"No Mux live stream bound to room {room_id}, nothing to drop")
                return
            await asyncio.to_thread(self.mux.signal_live_stream_complete, stream.id)
        except Exception as e:
            logger.warning(f"⚠️ Drop of existing CDN stream for room {room_id} failed: {e}")

    async def query_state(self, room_id: int) -> bool:
        """Whether the provider has a usable live stream bound to the room.

        Raises:
            AppError: E_PROVIDER_CALL_FAILED if the provider call errors.
        """
        self._streams.pop(room_id, None)
        try:
            stream = await asyncio.to_thread(
                self.mux.find_live_stream_by_passthrough, room_passthrough(room_id)
            )
        except AppError:
            raise
        except Exception as e:
            raise AppError(
                AppErrorCode.E_PROVIDER_CALL_FAILED,
                f"Mux query for room {room_id} failed: {type(e).__name__}: {e}",
            ) from e

        if stream is None or stream.status == "disabled":
            logger.info(f"No usable Mux live stream for room {room_id}")
            return False

        self._streams[room_id] = stream
        return True

    def _stream(self, room_id: int) -> MuxLiveStream:
        stream = self._streams.get(room_id)
        if stream is None:
            raise AppError(
                AppErrorCode.E_PROVIDER_CALL_FAILED,
                f"No confirmed CDN binding for room {room_id}; call query_state first",
            )
        return stream

    def push_urls(self, room_id: int) -> dict[str, str]:
        stream = self._stream(room_id)
        rtmp_base = self.mux.rtmp_ingest_base_url
        srt_url = f"{self.mux.srt_ingest_base_url}?streamid={stream.stream_key}"
        if stream.srt_passphrase:
            srt_url += f"&passphrase={stream.srt_passphrase}"
        return {
            "push_rtmp_url": f"{rtmp_base}/app/{stream.stream_key}",
            "push_obs_server": f"{rtmp_base}/app",
            "push_obs_stream_key": stream.stream_key,
            # no WebRTC ingest on this provider
            "push_webrtc_url": "",
            "push_srt_url": srt_url,
        }

    def pull_urls(self, room_id: int) -> dict[str, str]:
        stream = self._stream(room_id)
        playback_id = stream.public_playback_id
        return {
            "pull_rtmp_url": "",
            "pull_flv_url": "",
            "pull_hls_url": f"{self.mux.stream_base_url}/{playback_id}.m3u8" if playback_id else "",
            "pull_webrtc_url": "",
        }

    def urls_for(self, room_id: int) -> UrlSet:
        return UrlSet(**self.push_urls(room_id), **self.pull_urls(room_id))
