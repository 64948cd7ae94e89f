from enum import Enum

from pydantic import BaseModel

from roomcast.shared.config import config


class ProjectEnv(str, Enum):
    DEVELOPMENT = "development"
    PROD = "prod"


class AppEnvironConfig(BaseModel):
    # Deployment environment gates which rooms get an encoder process
    PROJECT_ENV: ProjectEnv = ProjectEnv(
        (config.get("PROJECT_ENV") or "development").strip().lower()
    )

    # Public demo switch: when enabled, the provider wrapper returns stubs and avoids network calls.
    DEMO_MODE: bool = config.get("DEMO_MODE", "false").strip().lower() == "true"  # type: ignore
    DEBUG: bool = config.get("DEBUG", "false").strip().lower() == "true"  # type: ignore

    # Encoder
    FFMPEG_BINARY: str = config.get("FFMPEG_BINARY", "ffmpeg").strip()  # type: ignore

    # Relay server (SRS-style) control API and URL templates
    RELAY_API_BASE_URL: str = config.get("RELAY_API_BASE_URL", "http://localhost:1985").strip()  # type: ignore
    RELAY_HTTP_TIMEOUT: float = float((config.get("RELAY_HTTP_TIMEOUT") or "").strip() or 10)
    RELAY_EVICT_PAGE_SIZE: int = int((config.get("RELAY_EVICT_PAGE_SIZE") or "").strip() or 9999)
    RELAY_APP_NAME: str = config.get("RELAY_APP_NAME", "livestream").strip()  # type: ignore
    RELAY_PUSH_RTMP_BASE: str = config.get("RELAY_PUSH_RTMP_BASE", "rtmp://localhost").strip()  # type: ignore
    RELAY_PUSH_WEBRTC_BASE: str = config.get(
        "RELAY_PUSH_WEBRTC_BASE", "http://localhost:1985"
    ).strip()  # type: ignore
    RELAY_PUSH_SRT_BASE: str = config.get("RELAY_PUSH_SRT_BASE", "srt://localhost:10080").strip()  # type: ignore
    RELAY_PULL_RTMP_BASE: str = config.get("RELAY_PULL_RTMP_BASE", "rtmp://localhost").strip()  # type: ignore
    RELAY_PULL_HTTP_BASE: str = config.get("RELAY_PULL_HTTP_BASE", "http://localhost:5001").strip()  # type: ignore
    RELAY_PULL_WEBRTC_BASE: str = config.get("RELAY_PULL_WEBRTC_BASE", "webrtc://localhost").strip()  # type: ignore

    # Mux configuration
    MUX_TOKEN_ID: str | None = (config.get("MUX_TOKEN_ID") or "").strip() or None
    MUX_TOKEN_SECRET: str | None = (config.get("MUX_TOKEN_SECRET") or "").strip() or None
    MUX_STREAM_BASE_URL: str = config.get("MUX_STREAM_BASE_URL", "https://stream.mux.com").strip()  # type: ignore
    MUX_RTMP_INGEST_BASE_URL: str = config.get(
        "MUX_RTMP_INGEST_BASE_URL", "rtmps://global-live.mux.com:443"
    ).strip()  # type: ignore
    MUX_SRT_INGEST_BASE_URL: str = config.get(
        "MUX_SRT_INGEST_BASE_URL", "srt://global-live.mux.com:6001"
    ).strip()  # type: ignore
    MUX_LIST_PAGE_LIMIT: int = int((config.get("MUX_LIST_PAGE_LIMIT") or "").strip() or 100)

    # Optional playlist forward to an external RTMP platform
    FORWARD_PUSH_URL: str | None = (config.get("FORWARD_PUSH_URL") or "").strip() or None
    FORWARD_LIST_FILE: str | None = (config.get("FORWARD_LIST_FILE") or "").strip() or None

    # Serialize provisioning and relay callbacks per room through a Redis lease
    ROOM_LEASE_ENABLE: bool = config.get("ROOM_LEASE_ENABLE", "true").strip().lower() == "true"  # type: ignore
    ROOM_LEASE_TTL: int = int((config.get("ROOM_LEASE_TTL") or "").strip() or 30)


_app_environ_config = AppEnvironConfig()


def get_app_environ_config() -> AppEnvironConfig:
    return _app_environ_config
