"""
Simple Redis client manager that creates and tracks clients per label.
"""

import threading
from typing import Dict

from loguru import logger
from redis.asyncio import Redis

from ..config import config
from .mongo import _hide_password


class RedisManager:
    """
    Simple Redis client manager.

    Connection strings come from REDIS_URL_<LABEL>, with `default` falling
    back to REDIS_URL_DEFAULT / REDIS_URL / localhost.
    """

    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if hasattr(self, "_initialized"):
            return
        self._clients: Dict[str, Redis] = {}
        self._initialized = True

    def get_client(self, label: str = "default") -> Redis:
        with self._lock:
            client = self._clients.get(label)
            if client is None:
                url = config.get_redis_url(label) or config.get_redis_url("default")
                logger.info("Creating Redis client for label '{}': {}", label, _hide_password(url))
                client = Redis.from_url(url, decode_responses=True)
                self._clients[label] = client
            return client

    async def close_all(self):
        with self._lock:
            clients = list(self._clients.items())
            self._clients.clear()
        for label, client in clients:
            await client.aclose()
            logger.info("Closed Redis client for label '{}'", label)


def get_redis_manager() -> RedisManager:
    return RedisManager()


def get_redis_client(label: str = "default") -> Redis:
    return get_redis_manager().get_client(label)
