"""Per-room provisioning.

For one room: pick the transport strategy, resolve its URL set, purge the
room's previous live sessions, optionally start the encoder, and write the
URLs (plus a session row for CDN rooms) back to the datastore.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from loguru import logger

from roomcast.app_config import ProjectEnv
from roomcast.domain.live.cdn.cdn_strategy import CdnStrategy
from roomcast.domain.live.relay.relay_sessions import RelaySessionManager
from roomcast.schemas import (
    EXTERNAL_SOURCE_CONNECTION_ID,
    LiveSessionStatus,
    RoomConfig,
    RoomType,
    TransportMode,
    UrlSet,
)
from roomcast.services.ffmpeg_launcher import FfmpegLauncher, LaunchOutcome, LaunchResult
from roomcast.shared.lock import RoomLease
from roomcast.utils.app_errors import AppError, AppErrorCode

from ._datastore import LiveDatastore
from .provision_models import ProvisionState, RoomProvisionResult


def should_launch(room: RoomConfig, env: ProjectEnv) -> bool:
    """Encoder activation gate for the deployment environment."""
    return (env == ProjectEnv.DEVELOPMENT and room.activate_in_dev) or (
        env == ProjectEnv.PROD and room.activate_in_prod
    )


def cdn_enabled(room: RoomConfig, env: ProjectEnv) -> bool:
    return (
        room.transport_mode == TransportMode.CDN
        and env == ProjectEnv.PROD
        and room.activate_in_prod
    )


class RoomProvisioner:
    def __init__(
        self,
        datastore: LiveDatastore,
        launcher: FfmpegLauncher,
        relay_sessions: RelaySessionManager,
        cdn: CdnStrategy,
        env: ProjectEnv,
        lease_factory: Callable[[int], RoomLease] | None = None,
    ):
        self.datastore = datastore
        self.launcher = launcher
        self.relay_sessions = relay_sessions
        self.cdn = cdn
        self.env = env
        self.lease_factory = lease_factory

    async def provision(self, room: RoomConfig) -> RoomProvisionResult:
        """Provision one room. Errors are recorded on the result, never raised."""
        result = RoomProvisionResult(room_id=room.room_id, transport_mode=room.transport_mode)

        if self.lease_factory is None:
            return await self._provision(room, result)

        async with self.lease_factory(room.room_id) as lease:
            if not await lease.acquire():
                result.advance(ProvisionState.ABORTED)
                result.errcode = AppErrorCode.E_STALE_GENERATION.value
                result.error = "room lease not acquired"
                logger.error(f"❌ Room {room.room_id}: lease busy, provisioning aborted")
                return result
            result.generation = lease.generation
            return await self._provision(room, result, lease)

    async def _provision(
        self,
        room: RoomConfig,
        result: RoomProvisionResult,
        lease: RoomLease | None = None,
    ) -> RoomProvisionResult:
        room_id = room.room_id

        if room.transport_mode == TransportMode.CDN:
            urls = await self._resolve_cdn(room, result)
        else:
            urls = await self._resolve_self_hosted(room, result)
        if urls is None:
            return result

        result.urls = urls
        result.advance(ProvisionState.URLS_RESOLVED)

        if not await self._holds_fence(lease, result):
            return result

        # Stale rows must not survive a pass, whether or not a process starts
        await self.datastore.delete_sessions_by_room(room_id)

        if should_launch(room, self.env):
            launch = await self._launch(room, urls)
            result.launch = launch
            if launch.launched:
                result.advance(ProvisionState.PROCESS_LAUNCHED)
            else:
                result.advance(ProvisionState.LAUNCH_FAILED)
                result.errcode = AppErrorCode.E_LAUNCH_FAILED.value
                result.error = launch.error
        else:
            logger.debug(f"Room {room_id}: encoder not activated in {self.env.value}")
            result.advance(ProvisionState.PROCESS_SKIPPED)

        await self.datastore.update_room(room_id, self._room_fields(room, urls))

        if room.transport_mode == TransportMode.CDN:
            if not await self._holds_fence(lease, result):
                return result
            # The relay's publish callback never fires for provider-ingested streams
            await self.datastore.create_session(self._cdn_session_fields(room, result))

        result.advance(ProvisionState.PERSISTED)
        logger.info(
            f"✅ Room {room_id} provisioned ({room.transport_mode.value}, "
            f"{result.history[-1].value})"
        )
        return result

    async def _holds_fence(self, lease: RoomLease | None, result: RoomProvisionResult) -> bool:
        """False, with the result aborted, once a newer writer has taken the room."""
        if lease is None:
            return True
        current = await lease.current_generation()
        if current == result.generation:
            return True
        result.advance(ProvisionState.ABORTED)
        result.errcode = AppErrorCode.E_STALE_GENERATION.value
        result.error = f"generation {result.generation} superseded by {current}"
        logger.warning(f"⚠️ Room {result.room_id}: {result.error}, writes stopped")
        return False

    async def _resolve_cdn(self, room: RoomConfig, result: RoomProvisionResult) -> UrlSet | None:
        room_id = room.room_id
        if not cdn_enabled(room, self.env):
            result.advance(ProvisionState.SKIPPED)
            logger.info(f"Room {room_id}: CDN room not active in {self.env.value}, skipped")
            return None

        result.advance(ProvisionState.STRATEGY_CHOSEN)
        await self.cdn.drop_existing(room_id)
        try:
            exists = await self.cdn.query_state(room_id)
        except AppError as e:
            result.advance(ProvisionState.ABORTED)
            result.errcode = e.errcode
            result.error = e.errmesg
            logger.error(f"❌ Room {room_id}: CDN query failed, aborted: {e.errmesg}")
            return None

        if not exists:
            result.advance(ProvisionState.ABORTED)
            result.error = "no live stream bound on provider"
            logger.warning(f"⚠️ Room {room_id}: no CDN stream bound, aborted")
            return None

        return self.cdn.urls_for(room_id)

    async def _resolve_self_hosted(
        self, room: RoomConfig, result: RoomProvisionResult
    ) -> UrlSet | None:
        secret_key = await self.datastore.find_room_secret(room.room_id)
        if not secret_key:
            # Rooms without a key are unconfigured, not broken
            result.advance(ProvisionState.SKIPPED)
            result.errcode = AppErrorCode.E_UNCONFIGURED_ROOM.value
            logger.debug(f"Room {room.room_id}: no secret key, skipped")
            return None

        result.advance(ProvisionState.STRATEGY_CHOSEN)
        return self.relay_sessions.urls_for(room.room_id, secret_key, RoomType.SYSTEM)

    async def _launch(self, room: RoomConfig, urls: UrlSet) -> LaunchResult:
        if not room.local_file:
            logger.error(f"❌ Room {room.room_id}: encoder activated but no local file configured")
            return LaunchResult(outcome=LaunchOutcome.LAUNCH_FAILED, error="no local file")

        cmd = self.launcher.build_push_command(
            local_file=room.local_file,
            push_url=urls.push_rtmp_url,
            transport_mode=room.transport_mode,
        )
        try:
            return await self.launcher.launch(cmd)
        except Exception as e:
            logger.exception(f"❌ Room {room.room_id}: encoder launch raised: {e}")
            return LaunchResult(outcome=LaunchOutcome.LAUNCH_FAILED, error=str(e), command=cmd)

    def _room_fields(self, room: RoomConfig, urls: UrlSet) -> dict[str, Any]:
        return {
            "user_id": room.user_id,
            "name": room.name,
            "desc": room.desc,
            "cover_img": room.cover_img,
            "weight": room.weight,
            "transport_mode": room.transport_mode,
            "auth_required": room.auth_required,
            "room_type": RoomType.SYSTEM,
            **urls.model_dump(),
        }

    def _cdn_session_fields(self, room: RoomConfig, result: RoomProvisionResult) -> dict[str, Any]:
        launch_failed = result.launch is not None and not result.launch.launched
        return {
            "room_id": room.room_id,
            "user_id": room.user_id,
            "source_connection_id": EXTERNAL_SOURCE_CONNECTION_ID,
            # track detection is unknown for provider-ingested streams
            "audio_track_present": True,
            "video_track_present": True,
            "status": LiveSessionStatus.PENDING if launch_failed else LiveSessionStatus.LIVE,
            "generation": result.generation,
        }
