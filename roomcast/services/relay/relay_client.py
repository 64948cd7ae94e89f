import httpx
from loguru import logger

from roomcast.services.relay.relay_schemas import (
    RelayAckResponse,
    RelayClientInfo,
    RelayClientsResponse,
)
from roomcast.utils.app_errors import AppError, AppErrorCode


class RelayClient:
    """Client for the relay server's HTTP control API."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def list_clients(self, start: int = 0, count: int = 100) -> list[RelayClientInfo]:
        """List connected publishers and viewers, paged by offset/count."""
        url = f"{self.base_url}/api/v1/clients"
        try:
            async with httpx.AsyncClient(transport=self.transport) as client:
                response = await client.get(
                    url,
                    params={"start": start, "count": count},
                    timeout=self.timeout,
                )
                response.raise_for_status()
                data = RelayClientsResponse.model_validate(response.json())
        except (httpx.HTTPError, ValueError) as e:
            raise AppError(
                AppErrorCode.E_PROVIDER_CALL_FAILED,
                f"relay list_clients failed: {type(e).__name__}: {e}",
            ) from e

        if data.code != 0:
            raise AppError(
                AppErrorCode.E_PROVIDER_CALL_FAILED,
                f"relay list_clients returned code={data.code}",
            )
        logger.debug(f"relay list_clients start={start} count={count} -> {len(data.clients)}")
        return data.clients

    async def delete_client(self, client_id: str) -> None:
        """Kick one client off the relay."""
        url = f"{self.base_url}/api/v1/clients/{client_id}"
        try:
            async with httpx.AsyncClient(transport=self.transport) as client:
                response = await client.delete(url, timeout=self.timeout)
                response.raise_for_status()
                data = RelayAckResponse.model_validate(response.json())
        except (httpx.HTTPError, ValueError) as e:
            raise AppError(
                AppErrorCode.E_PROVIDER_CALL_FAILED,
                f"relay delete_client {client_id} failed: {type(e).__name__}: {e}",
            ) from e

        if data.code != 0:
            raise AppError(
                AppErrorCode.E_PROVIDER_CALL_FAILED,
                f"relay delete_client {client_id} returned code={data.code}",
            )
