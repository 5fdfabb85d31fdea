"""Client for the OpenRouter chat completions endpoint."""

import logging
from typing import Any

import httpx

from generate_chat.config import RelaySettings

logger = logging.getLogger(__name__)


class UpstreamError(Exception):
    """The completion API could not produce a usable response."""

    def __init__(self, message: str, status_code: int | None = None, detail: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


def extract_content(data: Any) -> str:
    """Return the first choice's message text, or "" when there is none."""
    if not isinstance(data, dict):
        return ""
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    first = choices[0]
    message = first.get("message") if isinstance(first, dict) else None
    content = message.get("content") if isinstance(message, dict) else None
    return content if isinstance(content, str) else ""


class CompletionClient:
    """HTTP client for one relay invocation."""

    def __init__(
        self,
        api_key: str,
        url: str = "https://openrouter.ai/api/v1/chat/completions",
        default_model: str = "openrouter/auto",
        app_url: str = "",
        app_title: str = "Chatrelay",
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.url = url
        self.default_model = default_model
        self.app_url = app_url
        self.app_title = app_title
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: RelaySettings) -> "CompletionClient":
        return cls(
            api_key=settings.openrouter_api_key,
            url=settings.openrouter_url,
            default_model=settings.default_model,
            app_url=settings.app_url,
            app_title=settings.app_title,
            timeout=settings.upstream_timeout,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "X-Title": self.app_title,
        }
        if self.app_url:
            headers["HTTP-Referer"] = self.app_url
        return headers

    async def complete(self, messages: list[Any], model: str | None = None) -> str:
        """
        Forward messages to the completion API and return the reply text.

        Messages are sent exactly as received, in caller order.

        Raises:
            UpstreamError: on transport failure, non-2xx status or a body
                that is not JSON

        """
        payload = {"model": model or self.default_model, "messages": messages}
        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self._transport
        ) as client:
            try:
                response = await client.post(
                    self.url, json=payload, headers=self._headers()
                )
            except httpx.RequestError as e:
                logger.error(f"OpenRouter request error: {e}")
                raise UpstreamError(f"Request failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            logger.error(
                f"OpenRouter returned non-JSON body (HTTP {response.status_code}): "
                f"{response.text[:500]}"
            )
            raise UpstreamError(
                "Invalid upstream response", status_code=response.status_code
            ) from e

        if not response.is_success:
            logger.error(f"OpenRouter error (HTTP {response.status_code}): {data}")
            raise UpstreamError(
                "Upstream error", status_code=response.status_code, detail=data
            )

        return extract_content(data)
