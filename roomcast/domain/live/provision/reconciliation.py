"""Reconciliation pass over every configured room.

Run once at process start; safe to run again.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable

from loguru import logger

from roomcast.domain.live.relay.relay_sessions import RelaySessionManager
from roomcast.schemas import RoomConfig
from roomcast.services.ffmpeg_launcher import FfmpegLauncher
from roomcast.utils.app_errors import AppErrorCode, format_error

from .provision_models import ProvisionState, ReconciliationReport, RoomProvisionResult
from .room_provisioner import RoomProvisioner


class ReconciliationRunner:
    def __init__(
        self,
        rooms: Iterable[RoomConfig],
        launcher: FfmpegLauncher,
        relay_sessions: RelaySessionManager,
        provisioner: RoomProvisioner,
        forward_push_url: str | None = None,
        forward_list_file: str | None = None,
    ):
        self.rooms: tuple[RoomConfig, ...] = tuple(rooms)
        self.launcher = launcher
        self.relay_sessions = relay_sessions
        self.provisioner = provisioner
        self.forward_push_url = forward_push_url
        self.forward_list_file = forward_list_file

    async def run(self) -> ReconciliationReport:
        """Evict relay sessions, then provision all rooms concurrently. Never raises."""
        if not self.launcher.is_available():
            logger.error(
                f"❌ {AppErrorCode.E_BINARY_UNAVAILABLE.value}: encoder "
                f"'{self.launcher.binary}' not installed, rooms left untouched"
            )
            return ReconciliationReport(binary_available=False)

        logger.warning(f"Encoder available, reconciling {len(self.rooms)} rooms")
        report = ReconciliationReport(binary_available=True)

        try:
            report.eviction = await self.relay_sessions.evict_all()

            outcomes = await asyncio.gather(
                *(self.provisioner.provision(room) for room in self.rooms),
                return_exceptions=True,
            )
            for room, outcome in zip(self.rooms, outcomes):
                if isinstance(outcome, BaseException):
                    logger.error(f"❌ Room {room.room_id} provisioning crashed:\n{format_error(outcome)}")
                    failed = RoomProvisionResult(room_id=room.room_id, transport_mode=room.transport_mode)
                    failed.advance(ProvisionState.FAILED)
                    failed.errcode = AppErrorCode.E_INTERNAL_ERROR.value
                    failed.error = f"{type(outcome).__name__}: {outcome}"
                    report.results.append(failed)
                else:
                    report.results.append(outcome)

            await self._forward_playlist()
        except Exception as e:
            logger.error(f"❌ Reconciliation pass failed:\n{format_error(e)}")
            return report

        logger.info(
            f"✅ Reconciliation done: persisted={report.count(ProvisionState.PERSISTED)} "
            f"skipped={report.count(ProvisionState.SKIPPED)} "
            f"aborted={report.count(ProvisionState.ABORTED)} "
            f"failed={report.count(ProvisionState.FAILED)}"
        )
        return report

    async def _forward_playlist(self) -> None:
        if not (self.forward_push_url and self.forward_list_file):
            return
        cmd = self.launcher.build_forward_command(self.forward_list_file, self.forward_push_url)
        result = await self.launcher.launch(cmd)
        if result.launched:
            logger.info(f"✅ Playlist forward started pid={result.pid}")
        else:
            logger.error(f"❌ Playlist forward failed: {result.error}")
