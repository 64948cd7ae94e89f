"""Push/pull endpoint bundle for a room."""

from pydantic import BaseModel


class UrlSet(BaseModel):
    """Ingest (push) and egress (pull) URLs for a room across protocols."""

    push_rtmp_url: str = ""
    push_obs_server: str = ""
    push_obs_stream_key: str = ""
    push_webrtc_url: str = ""
    push_srt_url: str = ""

    pull_rtmp_url: str = ""
    pull_flv_url: str = ""
    pull_hls_url: str = ""
    pull_webrtc_url: str = ""

    @property
    def push_fields(self) -> dict[str, str]:
        return {k: v for k, v in self.model_dump().items() if k.startswith("push_")}

    @property
    def pull_fields(self) -> dict[str, str]:
        return {k: v for k, v in self.model_dump().items() if k.startswith("pull_")}
