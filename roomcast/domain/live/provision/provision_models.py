"""Result models for provisioning passes."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from roomcast.domain.live.relay.relay_sessions import EvictionReport
from roomcast.schemas import TransportMode, UrlSet
from roomcast.services.ffmpeg_launcher import LaunchResult


class ProvisionState(str, Enum):
    """Per-room provisioning states.

    IDLE → STRATEGY_CHOSEN → URLS_RESOLVED → PROCESS_LAUNCHED → PERSISTED
                 ↓                ↓        → PROCESS_SKIPPED  ↗
              SKIPPED          ABORTED     → LAUNCH_FAILED    ↗

    - SKIPPED: room not eligible (unconfigured self-hosted room, CDN room outside prod).
    - ABORTED: provider query failed or found no stream; nothing written.
    - FAILED: unexpected error escaped the room's provisioning.
    """

    IDLE = "idle"
    STRATEGY_CHOSEN = "strategy_chosen"
    URLS_RESOLVED = "urls_resolved"
    SKIPPED = "skipped"
    ABORTED = "aborted"
    PROCESS_LAUNCHED = "process_launched"
    PROCESS_SKIPPED = "process_skipped"
    LAUNCH_FAILED = "launch_failed"
    PERSISTED = "persisted"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


@dataclass
class RoomProvisionResult:
    room_id: int
    transport_mode: TransportMode
    state: ProvisionState = ProvisionState.IDLE
    history: list[ProvisionState] = field(default_factory=list)
    urls: UrlSet | None = None
    launch: LaunchResult | None = None
    generation: int | None = None
    errcode: str | None = None
    error: str | None = None

    def advance(self, state: ProvisionState) -> None:
        self.history.append(self.state)
        self.state = state

    @property
    def persisted(self) -> bool:
        return self.state == ProvisionState.PERSISTED


@dataclass
class ReconciliationReport:
    binary_available: bool
    eviction: EvictionReport | None = None
    results: list[RoomProvisionResult] = field(default_factory=list)

    def count(self, state: ProvisionState) -> int:
        return sum(1 for r in self.results if r.state == state)
