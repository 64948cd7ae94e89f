"""FFmpeg launcher for room pushes.

Builds encoder command lines and starts them as detached children.

Launched processes are fire-and-forget: no handle is kept, nothing waits
for them and nothing restarts them. A child tied to this process would die
on every hot reload, and the relay would report the room's stream as ended.
"""

from __future__ import annotations

import asyncio
import shlex
import subprocess
from dataclasses import dataclass, field
from enum import Enum

from loguru import logger

from roomcast.schemas import TransportMode


class LaunchOutcome(str, Enum):
    LAUNCHED = "launched"
    LAUNCH_FAILED = "launch_failed"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class CommandSpec:
    """Encoder argv, kept as a list so the push URL is one opaque token."""

    binary: str
    args: tuple[str, ...]

    @property
    def argv(self) -> list[str]:
        return [self.binary, *self.args]

    @property
    def destination(self) -> str:
        return self.args[-1] if self.args else ""

    def display(self) -> str:
        """Shell-quoted command line, without the quiet log level flag."""
        argv = self.argv
        shown: list[str] = []
        i = 0
        while i < len(argv):
            if argv[i] == "-loglevel" and i + 1 < len(argv) and argv[i + 1] == "quiet":
                i += 2
                continue
            shown.append(argv[i])
            i += 1
        return " ".join(shlex.quote(token) for token in shown)


@dataclass
class LaunchResult:
    outcome: LaunchOutcome
    pid: int | None = None
    error: str | None = None
    command: CommandSpec | None = field(default=None, repr=False)

    @property
    def launched(self) -> bool:
        return self.outcome == LaunchOutcome.LAUNCHED


class FfmpegLauncher:
    """Detects and launches the external encoder."""

    def __init__(self, binary: str = "ffmpeg") -> None:
        self.binary = binary

    def is_available(self) -> bool:
        """Probe the encoder with `-version`. Never raises."""
        try:
            res = subprocess.run(
                [self.binary, "-version"],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                timeout=10,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug(f"Encoder probe failed for {self.binary}: {e}")
            return False
        return res.returncode == 0

    def build_push_command(
        self,
        local_file: str,
        push_url: str,
        transport_mode: TransportMode,
        transcode: bool = False,
    ) -> CommandSpec:
        """Loop a local file into a push URL at real-time rate.

        Self-hosted rooms pass both codecs through untouched unless
        `transcode` is set. CDN rooms are always re-encoded to h264/aac, never
        copied: the provider ingest accepts only those codecs, and local
        files are not guaranteed to carry them.
        """
        args: list[str] = [
            "-loglevel",
            "quiet",
            # read at native frame rate, like a capture device
            "-readrate",
            "1",
            "-stream_loop",
            "-1",
            "-i",
            local_file,
        ]
        if transport_mode == TransportMode.SELF_HOSTED and not transcode:
            args += ["-vcodec", "copy", "-acodec", "copy"]
        else:
            args += ["-vcodec", "h264", "-acodec", "aac"]
        args += ["-f", "flv", push_url]
        return CommandSpec(binary=self.binary, args=tuple(args))

    def build_forward_command(self, list_file: str, push_url: str) -> CommandSpec:
        """Relay a concat playlist to an external RTMP destination, re-encoded."""
        args = [
            "-threads",
            "1",
            "-readrate",
            "1",
            "-stream_loop",
            "-1",
            "-f",
            "concat",
            "-safe",
            "0",
            "-i",
            list_file,
            "-vcodec",
            "h264",
            "-acodec",
            "aac",
            "-f",
            "flv",
            push_url,
        ]
        return CommandSpec(binary=self.binary, args=tuple(args))

    async def launch(self, cmd: CommandSpec) -> LaunchResult:
        """Start `cmd` detached and return without waiting. Never raises."""
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd.argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
                start_new_session=True,
            )
        except (OSError, ValueError) as e:
            logger.error(f"❌ Encoder launch failed: {e} cmd={cmd.display()}")
            return LaunchResult(outcome=LaunchOutcome.LAUNCH_FAILED, error=str(e), command=cmd)

        logger.info(f"✅ Encoder launched pid={process.pid}: {cmd.display()}")
        return LaunchResult(outcome=LaunchOutcome.LAUNCHED, pid=process.pid, command=cmd)
