"""
Simple MongoDB client manager that creates and tracks clients per label.
"""

import threading
from typing import Dict

from loguru import logger
from motor.motor_asyncio import AsyncIOMotorClient

from ..config import config


def _hide_password(connection_string: str) -> str:
    if "@" not in connection_string or "://" not in connection_string:
        return connection_string
    scheme, rest = connection_string.split("://", 1)
    creds, host = rest.split("@", 1)
    user = creds.split(":", 1)[0]
    return f"{scheme}://{user}:***@{host}"


class MongoManager:
    """
    Simple MongoDB client manager.

    Connection strings come from MONGO_URL_<LABEL>, with `default` falling
    back to MONGO_URL_DEFAULT / MONGO_URL / localhost.
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
        self._clients: Dict[str, AsyncIOMotorClient] = {}
        self._initialized = True

    def get_client(self, label: str = "default") -> AsyncIOMotorClient:
        with self._lock:
            client = self._clients.get(label)
            if client is None:
                url = config.get_mongo_url(label) or config.get_mongo_url("default")
                logger.info("Creating MongoDB client for label '{}': {}", label, _hide_password(url))
                client = AsyncIOMotorClient(url)
                self._clients[label] = client
            return client

    def close_all(self):
        with self._lock:
            for label, client in self._clients.items():
                client.close()
                logger.info("Closed MongoDB client for label '{}'", label)
            self._clients.clear()


def get_mongo_manager() -> MongoManager:
    return MongoManager()


def get_mongo_client(label: str = "default") -> AsyncIOMotorClient:
    return get_mongo_manager().get_client(label)
