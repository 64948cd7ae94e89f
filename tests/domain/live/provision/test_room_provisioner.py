"""Tests for RoomProvisioner."""

import asyncio
import time
from unittest.mock import AsyncMock, patch

import pytest

from roomcast.app_config import ProjectEnv, get_app_environ_config
from roomcast.domain.live.cdn.cdn_strategy import CdnStrategy
from roomcast.domain.live.provision.provision_models import ProvisionState
from roomcast.domain.live.provision.room_provisioner import cdn_enabled, should_launch
from roomcast.schemas import LiveSessionStatus, RoomType, TransportMode
from roomcast.services.integrations.mux_service import MuxService
from roomcast.shared.lock import RoomLease
from roomcast.utils.app_errors import AppErrorCode
from tests.fixtures.fakes import FakeLauncher, FakeRedis, make_mux_mock, make_mux_stream, make_room

ROOM_7_PUSH = "rtmp://push.example.com/livestream/roomId___7?pushtype=0&pushkey=abc"


def _cdn_room(**overrides):
    values = dict(
        room_id=2,
        user_id=20,
        transport_mode=TransportMode.CDN,
        local_file="/media/room2.mp4",
        activate_in_dev=False,
        activate_in_prod=True,
    )
    values.update(overrides)
    return make_room(**values)


class _BusyLease:
    generation = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None

    async def acquire(self, *args, **kwargs):
        return False


class TestActivationGates:
    @pytest.mark.parametrize(
        ("env", "in_dev", "in_prod", "expected"),
        [
            (ProjectEnv.DEVELOPMENT, True, False, True),
            (ProjectEnv.DEVELOPMENT, False, True, False),
            (ProjectEnv.PROD, False, True, True),
            (ProjectEnv.PROD, True, False, False),
        ],
    )
    def test_should_launch(self, env, in_dev, in_prod, expected):
        room = make_room(activate_in_dev=in_dev, activate_in_prod=in_prod)
        assert should_launch(room, env) is expected

    def test_cdn_only_enabled_in_prod(self):
        room = _cdn_room()
        assert cdn_enabled(room, ProjectEnv.PROD)
        assert not cdn_enabled(room, ProjectEnv.DEVELOPMENT)
        assert not cdn_enabled(room.model_copy(update={"activate_in_prod": False}), ProjectEnv.PROD)


class TestSelfHosted:
    async def test_dev_room_launches_and_persists(self, make_provisioner, fake_datastore, fake_launcher):
        result = await make_provisioner().provision(make_room())

        assert result.state == ProvisionState.PERSISTED
        assert result.history == [
            ProvisionState.IDLE,
            ProvisionState.STRATEGY_CHOSEN,
            ProvisionState.URLS_RESOLVED,
            ProvisionState.PROCESS_LAUNCHED,
        ]
        assert result.launch.pid == 4242

        assert len(fake_launcher.launched) == 1
        argv = fake_launcher.launched[0].argv
        assert argv[-1] == ROOM_7_PUSH
        assert "copy" in argv

        room_row = fake_datastore.rooms[7]
        assert room_row["push_rtmp_url"] == ROOM_7_PUSH
        assert room_row["pull_flv_url"] == "https://pull.example.com/livestream/roomId___7.flv"
        assert room_row["room_type"] == RoomType.SYSTEM
        assert room_row["weight"] == 5

    async def test_self_hosted_room_gets_no_session_row(self, make_provisioner, fake_datastore):
        fake_datastore.sessions.append({"id": 99, "room_id": 7, "source_connection_id": "old"})

        await make_provisioner().provision(make_room())

        # the relay's publish callback creates it later
        assert fake_datastore.sessions_for(7) == []
        assert fake_datastore.calls == [
            ("find_room_secret", 7),
            ("delete_sessions_by_room", 7),
            ("update_room", 7),
        ]

    async def test_prod_without_activation_persists_without_launch(
        self, make_provisioner, fake_datastore, fake_launcher
    ):
        result = await make_provisioner(env=ProjectEnv.PROD).provision(make_room())

        assert result.state == ProvisionState.PERSISTED
        assert ProvisionState.PROCESS_SKIPPED in result.history
        assert result.launch is None
        assert fake_launcher.launched == []
        assert fake_datastore.rooms[7]["push_rtmp_url"] == ROOM_7_PUSH

    async def test_room_without_secret_is_skipped(self, make_provisioner, fake_datastore, fake_launcher):
        result = await make_provisioner().provision(make_room(room_id=8))

        assert result.state == ProvisionState.SKIPPED
        assert result.errcode == AppErrorCode.E_UNCONFIGURED_ROOM.value
        assert fake_datastore.calls == [("find_room_secret", 8)]
        assert fake_launcher.launched == []

    async def test_missing_local_file_is_launch_failure(self, make_provisioner, fake_datastore, fake_launcher):
        result = await make_provisioner().provision(make_room(local_file=""))

        assert result.state == ProvisionState.PERSISTED
        assert ProvisionState.LAUNCH_FAILED in result.history
        assert fake_launcher.launched == []
        assert 7 in fake_datastore.rooms

    async def test_launch_exception_is_recorded(self, make_provisioner, fake_datastore, fake_launcher):
        with patch.object(fake_launcher, "launch", AsyncMock(side_effect=RuntimeError("fork bomb"))):
            result = await make_provisioner().provision(make_room())

        assert ProvisionState.LAUNCH_FAILED in result.history
        assert result.launch.error == "fork bomb"
        assert result.errcode == AppErrorCode.E_LAUNCH_FAILED.value
        assert result.state == ProvisionState.PERSISTED


class TestCdn:
    async def test_dev_skips_cdn_room_without_provider_calls(self, make_provisioner, fake_datastore):
        mux = make_mux_mock({2: make_mux_stream(2)})

        result = await make_provisioner(cdn=CdnStrategy(mux=mux)).provision(_cdn_room())

        assert result.state == ProvisionState.SKIPPED
        mux.find_live_stream_by_passthrough.assert_not_called()
        assert fake_datastore.calls == []

    async def test_bound_stream_persists_urls_and_session(self, make_provisioner, fake_datastore, fake_launcher):
        mux = make_mux_mock({2: make_mux_stream(2)})

        result = await make_provisioner(env=ProjectEnv.PROD, cdn=CdnStrategy(mux=mux)).provision(_cdn_room())

        assert result.state == ProvisionState.PERSISTED
        mux.signal_live_stream_complete.assert_called_once_with("ls_2")

        room_row = fake_datastore.rooms[2]
        assert room_row["push_rtmp_url"] == "rtmps://ingest.example.com:443/app/sk_2"
        assert room_row["push_obs_stream_key"] == "sk_2"
        assert room_row["pull_hls_url"] == "https://stream.example.com/pb_2.m3u8"
        assert room_row["push_webrtc_url"] == ""

        sessions = fake_datastore.sessions_for(2)
        assert len(sessions) == 1
        assert sessions[0]["source_connection_id"] == "-1"
        assert sessions[0]["status"] == LiveSessionStatus.LIVE
        assert sessions[0]["audio_track_present"] is True

        argv = fake_launcher.launched[0].argv
        assert argv[-1] == "rtmps://ingest.example.com:443/app/sk_2"
        assert "h264" in argv

    async def test_no_bound_stream_aborts_without_writes(self, make_provisioner, fake_datastore, fake_launcher):
        cdn = CdnStrategy(mux=make_mux_mock({}))

        result = await make_provisioner(env=ProjectEnv.PROD, cdn=cdn).provision(_cdn_room())

        assert result.state == ProvisionState.ABORTED
        assert fake_datastore.calls == []
        assert fake_launcher.launched == []

    async def test_disabled_stream_aborts(self, make_provisioner, fake_datastore):
        cdn = CdnStrategy(mux=make_mux_mock({2: make_mux_stream(2, status="disabled")}))

        result = await make_provisioner(env=ProjectEnv.PROD, cdn=cdn).provision(_cdn_room())

        assert result.state == ProvisionState.ABORTED
        assert fake_datastore.sessions == []

    async def test_provider_error_aborts_with_errcode(self, make_provisioner, fake_datastore):
        mux = make_mux_mock()
        mux.find_live_stream_by_passthrough.side_effect = RuntimeError("503")

        result = await make_provisioner(env=ProjectEnv.PROD, cdn=CdnStrategy(mux=mux)).provision(_cdn_room())

        assert result.state == ProvisionState.ABORTED
        assert result.errcode == AppErrorCode.E_PROVIDER_CALL_FAILED.value
        assert fake_datastore.calls == []

    async def test_launch_failure_leaves_pending_session(self, make_provisioner, fake_datastore):
        cdn = CdnStrategy(mux=make_mux_mock({2: make_mux_stream(2)}))

        result = await make_provisioner(
            env=ProjectEnv.PROD, cdn=cdn, launcher=FakeLauncher(fail=True)
        ).provision(_cdn_room())

        assert result.state == ProvisionState.PERSISTED
        assert ProvisionState.LAUNCH_FAILED in result.history
        sessions = fake_datastore.sessions_for(2)
        assert [s["status"] for s in sessions] == [LiveSessionStatus.PENDING]

    async def test_repeated_provisioning_keeps_one_session(self, make_provisioner, fake_datastore):
        provisioner = make_provisioner(
            env=ProjectEnv.PROD, cdn=CdnStrategy(mux=make_mux_mock({2: make_mux_stream(2)}))
        )

        await provisioner.provision(_cdn_room())
        await provisioner.provision(_cdn_room())

        assert len(fake_datastore.sessions_for(2)) == 1


class TestRoomLease:
    async def test_generation_stamped_on_cdn_session(self, make_provisioner, fake_datastore):
        redis = FakeRedis()
        provisioner = make_provisioner(
            env=ProjectEnv.PROD,
            cdn=CdnStrategy(mux=make_mux_mock({2: make_mux_stream(2)})),
            lease_factory=lambda room_id: RoomLease(redis, room_id, owner="test"),
        )

        first = await provisioner.provision(_cdn_room())
        second = await provisioner.provision(_cdn_room())

        assert (first.generation, second.generation) == (1, 2)
        assert [s["generation"] for s in fake_datastore.sessions_for(2)] == [2]
        assert "roomcast:lease:room:2" not in redis.store

    async def test_busy_lease_aborts_before_any_write(self, make_provisioner, fake_datastore, fake_launcher):
        provisioner = make_provisioner(lease_factory=lambda room_id: _BusyLease())

        result = await provisioner.provision(make_room())

        assert result.state == ProvisionState.ABORTED
        assert result.errcode == AppErrorCode.E_STALE_GENERATION.value
        assert fake_datastore.calls == []
        assert fake_launcher.launched == []


async def test_prod_never_launches_inactive_room_of_any_transport(make_provisioner, fake_launcher):
    provisioner = make_provisioner(
        env=ProjectEnv.PROD, cdn=CdnStrategy(mux=make_mux_mock({2: make_mux_stream(2)}))
    )

    await provisioner.provision(make_room(activate_in_prod=False))
    await provisioner.provision(_cdn_room(activate_in_prod=False))

    assert fake_launcher.launched == []


async def test_demo_mode_in_prod_aborts_cdn_room(make_provisioner, fake_datastore):
    cfg = get_app_environ_config().model_copy(update={"DEMO_MODE": True, "PROJECT_ENV": ProjectEnv.PROD})
    provisioner = make_provisioner(env=ProjectEnv.PROD, cdn=CdnStrategy(mux=MuxService(cfg)))

    result = await provisioner.provision(_cdn_room())

    assert result.state == ProvisionState.ABORTED
    assert result.errcode == AppErrorCode.E_PROVIDER_CALL_FAILED.value
    assert fake_datastore.calls == []
    assert fake_datastore.sessions == []


async def test_slow_provider_calls_overlap_across_rooms(make_provisioner):
    mux = make_mux_mock({room_id: make_mux_stream(room_id) for room_id in (2, 3, 4, 5)})
    find = mux.find_live_stream_by_passthrough.side_effect

    def _slow_find(passthrough):
        time.sleep(0.25)
        return find(passthrough)

    mux.find_live_stream_by_passthrough.side_effect = _slow_find
    provisioner = make_provisioner(env=ProjectEnv.PROD, cdn=CdnStrategy(mux=mux))
    rooms = [_cdn_room(room_id=room_id, user_id=room_id * 10) for room_id in (2, 3, 4, 5)]

    started = time.monotonic()
    results = await asyncio.gather(*(provisioner.provision(room) for room in rooms))
    elapsed = time.monotonic() - started

    assert [r.state for r in results] == [ProvisionState.PERSISTED] * 4
    # eight blocking lookups of 0.25s each
    assert elapsed < 1.0


class _FencedLease(RoomLease):
    """Lease whose fence moves on after `overtaken_after` checks."""

    def __init__(self, *args, overtaken_after: int, **kwargs):
        super().__init__(*args, **kwargs)
        self.overtaken_after = overtaken_after
        self.checks = 0

    async def current_generation(self) -> int:
        self.checks += 1
        if self.checks > self.overtaken_after:
            return (self.generation or 0) + 1
        return self.generation or 0


async def test_overtaken_before_delete_writes_nothing(make_provisioner, fake_datastore, fake_launcher):
    redis = FakeRedis()
    provisioner = make_provisioner(
        lease_factory=lambda room_id: _FencedLease(redis, room_id, owner="p", overtaken_after=0)
    )

    result = await provisioner.provision(make_room())

    assert result.state == ProvisionState.ABORTED
    assert result.errcode == AppErrorCode.E_STALE_GENERATION.value
    assert fake_datastore.calls == [("find_room_secret", 7)]
    assert fake_launcher.launched == []


async def test_overtaken_before_session_create_skips_session(make_provisioner, fake_datastore):
    redis = FakeRedis()
    provisioner = make_provisioner(
        env=ProjectEnv.PROD,
        cdn=CdnStrategy(mux=make_mux_mock({2: make_mux_stream(2)})),
        lease_factory=lambda room_id: _FencedLease(redis, room_id, owner="p", overtaken_after=1),
    )

    result = await provisioner.provision(_cdn_room())

    assert result.state == ProvisionState.ABORTED
    assert result.errcode == AppErrorCode.E_STALE_GENERATION.value
    assert ("create_session", 2) not in fake_datastore.calls
    assert fake_datastore.sessions_for(2) == []
