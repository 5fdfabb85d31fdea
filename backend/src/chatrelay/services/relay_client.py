"""Client for the generate-chat relay function."""

import logging

import httpx
from pydantic import ValidationError

from chatmodels import ChatTurn, RelayRequest, RelayResponse
from chatrelay.config import settings

logger = logging.getLogger(__name__)


class RelayError(Exception):
    """The relay call failed or answered with an error."""


class RelayClient:
    """HTTP client for the relay function."""

    def __init__(
        self,
        url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url or settings.relay_url
        self.api_key = settings.relay_api_key if api_key is None else api_key
        self.timeout = timeout or settings.relay_timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        if not self.api_key:
            return {}
        return {"Authorization": f"Bearer {self.api_key}", "apikey": self.api_key}

    async def generate(self, turns: list[ChatTurn], model: str | None = None) -> str:
        """
        Ask the relay for the assistant reply to a context window.

        Args:
            turns: Context, oldest first, ending with the new user turn
            model: Upstream model, relay default when None

        Returns:
            Reply text, possibly empty

        Raises:
            RelayError: on transport failure, non-2xx status or an error body

        """
        body = RelayRequest(messages=turns, model=model).model_dump(exclude_none=True)
        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self._transport
        ) as client:
            try:
                response = await client.post(self.url, json=body, headers=self._headers())
            except httpx.RequestError as e:
                logger.error(f"Relay request error: {e}")
                raise RelayError(f"Request failed: {e}") from e

        try:
            reply = RelayResponse(**response.json())
        except (ValueError, TypeError, ValidationError) as e:
            logger.error(f"Relay returned unreadable body (HTTP {response.status_code})")
            raise RelayError(f"HTTP {response.status_code}: invalid response") from e

        if not response.is_success or reply.error:
            logger.error(f"Relay error (HTTP {response.status_code}): {reply.error}")
            raise RelayError(reply.error or f"HTTP {response.status_code}")

        return reply.content


# Singleton client instance
_client: RelayClient | None = None


def get_relay_client() -> RelayClient:
    """Get the singleton relay client."""
    global _client
    if _client is None:
        _client = RelayClient(
            url=settings.relay_url,
            api_key=settings.relay_api_key,
            timeout=settings.relay_timeout,
        )
    return _client
