"""Process entry: run one reconciliation pass at startup."""

import asyncio

from loguru import logger

from roomcast.app_config import AppEnvironConfig, get_app_environ_config
from roomcast.domain.live.cdn.cdn_strategy import CdnStrategy
from roomcast.domain.live.provision._datastore import LiveDatastore
from roomcast.domain.live.provision.provision_models import ReconciliationReport
from roomcast.domain.live.provision.reconciliation import ReconciliationRunner
from roomcast.domain.live.provision.room_provisioner import RoomProvisioner
from roomcast.domain.live.relay.relay_sessions import RelaySessionManager
from roomcast.domain.live.room.room_registry import get_configured_rooms
from roomcast.schemas import init_beanie_odm
from roomcast.services.ffmpeg_launcher import FfmpegLauncher
from roomcast.services.room_cache import RoomListCache
from roomcast.shared.config import custom_config
from roomcast.shared.lock import RoomLease
from roomcast.shared.logging import init_logger
from roomcast.shared.storage.mongo import get_mongo_client, get_mongo_manager
from roomcast.shared.storage.redis import get_redis_client, get_redis_manager


def build_runner(cfg: AppEnvironConfig, redis_client) -> ReconciliationRunner:
    launcher = FfmpegLauncher(cfg.FFMPEG_BINARY)
    relay_sessions = RelaySessionManager.from_config(cfg)

    lease_factory = None
    if cfg.ROOM_LEASE_ENABLE:
        lease_factory = lambda room_id: RoomLease(redis_client, room_id, ttl=cfg.ROOM_LEASE_TTL)  # noqa: E731

    provisioner = RoomProvisioner(
        datastore=LiveDatastore(cache=RoomListCache(redis_client)),
        launcher=launcher,
        relay_sessions=relay_sessions,
        cdn=CdnStrategy(),
        env=cfg.PROJECT_ENV,
        lease_factory=lease_factory,
    )
    return ReconciliationRunner(
        rooms=get_configured_rooms(),
        launcher=launcher,
        relay_sessions=relay_sessions,
        provisioner=provisioner,
        forward_push_url=cfg.FORWARD_PUSH_URL,
        forward_list_file=cfg.FORWARD_LIST_FILE,
    )


async def reconcile() -> ReconciliationReport:
    cfg = get_app_environ_config()
    init_logger(debug=cfg.DEBUG)
    logger.info(f"Starting roomcast reconciliation (env={cfg.PROJECT_ENV.value})")

    mongo_client = get_mongo_client(custom_config.get_mongo_label())
    await init_beanie_odm(mongo_client.get_database())
    redis_client = get_redis_client(custom_config.get_redis_label())

    try:
        return await build_runner(cfg, redis_client).run()
    finally:
        await get_redis_manager().close_all()
        get_mongo_manager().close_all()


def main() -> None:
    asyncio.run(reconcile())


if __name__ == "__main__":
    main()
