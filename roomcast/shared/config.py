"""
Centralized configuration management.

Environment values are loaded, in increasing priority, from:
1) `env.example` (committed, safe placeholders)
2) `env.local` (optional, MUST NOT be committed)
3) System environment variables

Room definitions live in a YAML file (`roomcast.yml`) found by walking up
from the package directory.
"""

import os
import threading
from pathlib import Path

from dotenv import dotenv_values
from loguru import logger


class EnvironConfig:
    """
    Singleton configuration class that loads environment variables from env files
    and system environment, providing dictionary-like access with default values.
    """

    _instance = None
    _initialized = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(EnvironConfig, cls).__new__(cls)
        return cls._instance

    def __init__(self):
        if not self._initialized:
            self._config = {}
            self._load_config()
            EnvironConfig._initialized = True

    def _load_config(self):
        root = Path(__file__).parent.parent.parent

        example_path = root / "env.example"
        if example_path.exists():
            self._config.update(dotenv_values(example_path))
            logger.info("Loaded environment variables from {}", example_path)

        local_path = root / "env.local"
        if local_path.exists():
            self._config.update(dotenv_values(local_path))
            logger.info("Loaded and overrode environment variables from {}", local_path)

        self._config.update(os.environ)

    def __getitem__(self, key):
        if key not in self._config:
            raise KeyError(f"Configuration key '{key}' not found")
        return self._config[key]

    def get(self, key, default=None):
        return self._config.get(key, default)

    def __contains__(self, key):
        return key in self._config

    def get_redis_url(self, label: str = "default") -> str:
        """
        Get Redis connection URL for a label.

        `default` falls back to REDIS_URL_DEFAULT, REDIS_URL, then localhost.
        """
        if label == "default":
            return self.get("REDIS_URL_DEFAULT") or self.get("REDIS_URL") or "redis://localhost:6379"
        return self.get(f"REDIS_URL_{label.upper()}") or ""

    def get_mongo_url(self, label: str = "default") -> str:
        """
        Get MongoDB connection URL for a label.

        `default` falls back to MONGO_URL_DEFAULT, MONGO_URL, then localhost.
        """
        if label == "default":
            return (
                self.get("MONGO_URL_DEFAULT")
                or self.get("MONGO_URL")
                or "mongodb://localhost:27017/roomcast"
            )
        return self.get(f"MONGO_URL_{label.upper()}") or ""


class CustomConfig:
    """
    YAML-backed configuration.

    - Searches parent directories for roomcast.yml starting from the package
    - Loads into an internal dictionary
    - `ROOMCAST_CONFIG_FILE` overrides the search
    """

    _instance = None
    _initialized = False
    _lock = threading.Lock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super(CustomConfig, cls).__new__(cls)
        return cls._instance

    def __init__(self):
        if not self._initialized:
            self._data = {}
            self._path = self._find_yaml()
            if self._path:
                self._data = self._load_yaml(self._path) or {}
            CustomConfig._initialized = True

    def _find_yaml(self) -> Path | None:
        override = os.environ.get("ROOMCAST_CONFIG_FILE")
        if override:
            return Path(override)
        start = Path(__file__).parent
        for base in [start] + list(start.parents):
            candidate = base / "roomcast.yml"
            if candidate.exists() and candidate.is_file():
                logger.info("Loaded custom config from {}", candidate)
                return candidate
        return None

    def _load_yaml(self, path: Path):
        import yaml

        try:
            with open(path, "r", encoding="utf-8") as f:
                return yaml.safe_load(f) or {}
        except OSError as e:
            logger.error("Failed to load {}: {}", path, e)
            return {}

    def get(self, key, default=None):
        return self._data.get(key, default)

    def __contains__(self, key):
        return key in self._data

    def get_initial_users(self) -> dict:
        return self._data.get("initial_users") or {}

    def get_redis_label(self) -> str:
        return self._data.get("redis_label", "default")

    def get_mongo_label(self) -> str:
        return self._data.get("mongo_label", "default")


# Global instances
config = EnvironConfig()
custom_config = CustomConfig()
