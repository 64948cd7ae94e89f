"""Relay session management.

Lists and evicts sessions on the self-hosted relay, and derives the push/pull
URL set for self-hosted rooms.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, field

from loguru import logger

from roomcast.app_config import AppEnvironConfig, get_app_environ_config
from roomcast.schemas import RoomType, UrlSet
from roomcast.services.relay.relay_client import RelayClient
from roomcast.services.relay.relay_schemas import RelayClientInfo
from roomcast.utils.app_errors import AppError

STREAM_NAME_PREFIX = "roomId___"
_STREAM_NAME_RE = re.compile(rf"^{STREAM_NAME_PREFIX}(\d+)$")

# pushtype query value per room type
_PUSH_TYPE = {
    RoomType.SYSTEM: 0,
    RoomType.USER: 1,
}


def stream_name(room_id: int) -> str:
    return f"{STREAM_NAME_PREFIX}{room_id}"


def parse_room_id(stream: str) -> int | None:
    """Room id encoded in a relay stream name, or None for foreign streams."""
    match = _STREAM_NAME_RE.match(stream or "")
    return int(match.group(1)) if match else None


@dataclass(frozen=True)
class RelayUrlTemplates:
    app_name: str
    push_rtmp_base: str
    push_webrtc_base: str
    push_srt_base: str
    pull_rtmp_base: str
    pull_http_base: str
    pull_webrtc_base: str

    @classmethod
    def from_config(cls, cfg: AppEnvironConfig) -> RelayUrlTemplates:
        return cls(
            app_name=cfg.RELAY_APP_NAME,
            push_rtmp_base=cfg.RELAY_PUSH_RTMP_BASE.rstrip("/"),
            push_webrtc_base=cfg.RELAY_PUSH_WEBRTC_BASE.rstrip("/"),
            push_srt_base=cfg.RELAY_PUSH_SRT_BASE.rstrip("/"),
            pull_rtmp_base=cfg.RELAY_PULL_RTMP_BASE.rstrip("/"),
            pull_http_base=cfg.RELAY_PULL_HTTP_BASE.rstrip("/"),
            pull_webrtc_base=cfg.RELAY_PULL_WEBRTC_BASE.rstrip("/"),
        )


@dataclass
class EvictionReport:
    attempted: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    list_error: str | None = None

    @property
    def evicted(self) -> int:
        return len(self.attempted) - len(self.failed)


class RelaySessionManager:
    def __init__(
        self,
        relay_client: RelayClient,
        templates: RelayUrlTemplates,
        evict_page_size: int = 9999,
    ):
        self.relay_client = relay_client
        self.templates = templates
        self.evict_page_size = evict_page_size

    @classmethod
    def from_config(cls, cfg: AppEnvironConfig | None = None) -> RelaySessionManager:
        cfg = cfg or get_app_environ_config()
        return cls(
            relay_client=RelayClient(cfg.RELAY_API_BASE_URL, timeout=cfg.RELAY_HTTP_TIMEOUT),
            templates=RelayUrlTemplates.from_config(cfg),
            evict_page_size=cfg.RELAY_EVICT_PAGE_SIZE,
        )

    async def list_sessions(self, start: int = 0, count: int = 100) -> list[RelayClientInfo]:
        return await self.relay_client.list_clients(start=start, count=count)

    async def _evict_one(self, client_id: str) -> None:
        await self.relay_client.delete_client(client_id)
        logger.debug(f"Evicted relay client {client_id}")

    async def evict_all(self) -> EvictionReport:
        """Kick every client currently on the relay.

        One listing page, then one concurrent delete per client. A failed
        delete is logged on its own and does not stop the others.
        """
        report = EvictionReport()
        try:
            clients = await self.list_sessions(start=0, count=self.evict_page_size)
        except AppError as e:
            logger.error(f"❌ Failed to list relay clients: {e.errmesg}")
            report.list_error = e.errmesg
            return report

        report.attempted = [c.id for c in clients]
        results = await asyncio.gather(
            *(self._evict_one(client_id) for client_id in report.attempted),
            return_exceptions=True,
        )
        for client_id, result in zip(report.attempted, results):
            if isinstance(result, BaseException):
                report.failed.append(client_id)
                logger.error(f"❌ Failed to evict relay client {client_id}: {result}")

        if report.failed:
            logger.warning(
                f"⚠️ Evicted {report.evicted}/{len(report.attempted)} relay clients, "
                f"failed={report.failed}"
            )
        else:
            logger.info(f"✅ Evicted {report.evicted} relay clients")
        return report

    def urls_for(self, room_id: int, secret_key: str, room_type: RoomType = RoomType.SYSTEM) -> UrlSet:
        """Derive the room's push and pull URLs. No network call."""
        t = self.templates
        stream = stream_name(room_id)
        auth = f"pushtype={_PUSH_TYPE[room_type]}&pushkey={secret_key}"
        stream_with_auth = f"{stream}?{auth}"

        return UrlSet(
            push_rtmp_url=f"{t.push_rtmp_base}/{t.app_name}/{stream_with_auth}",
            push_obs_server=f"{t.push_rtmp_base}/{t.app_name}/",
            push_obs_stream_key=stream_with_auth,
            push_webrtc_url=(
                f"{t.push_webrtc_base}/rtc/v1/whip/?app={t.app_name}&stream={stream}&{auth}"
            ),
            push_srt_url=(
                f"{t.push_srt_base}?streamid=#!::r={t.app_name}/{stream},{auth.replace('&', ',')},m=publish"
            ),
            pull_rtmp_url=f"{t.pull_rtmp_base}/{t.app_name}/{stream}",
            pull_flv_url=f"{t.pull_http_base}/{t.app_name}/{stream}.flv",
            pull_hls_url=f"{t.pull_http_base}/{t.app_name}/{stream}.m3u8",
            pull_webrtc_url=f"{t.pull_webrtc_base}/{t.app_name}/{stream}",
        )
