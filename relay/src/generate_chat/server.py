#!/usr/bin/env python3
"""
generate-chat relay function.

Forwards a conversation to OpenRouter and returns the reply text.
Keeps no state between requests.
"""
import json
import logging
from typing import Callable

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, Response

from generate_chat.config import RelaySettings
from generate_chat.upstream import CompletionClient, UpstreamError

logger = logging.getLogger(__name__)

app = FastAPI(title="generate-chat")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}


def get_completion_client() -> CompletionClient:
    """Build the upstream client from the current environment."""
    return CompletionClient.from_settings(RelaySettings())


def get_client_factory() -> Callable[[], CompletionClient]:
    """Client factory, called inside the handler so settings errors are caught."""
    return get_completion_client


def json_response(body: dict, status_code: int = 200) -> JSONResponse:
    """JSON response carrying the CORS headers."""
    return JSONResponse(body, status_code=status_code, headers=CORS_HEADERS)


@app.options("/{path:path}")
async def preflight(path: str):
    """Answer CORS preflight with an empty body."""
    return Response(status_code=200, headers=CORS_HEADERS)


@app.post("/{path:path}")
async def generate_chat(
    path: str,
    request: Request,
    client_factory: Callable[[], CompletionClient] = Depends(get_client_factory),
):
    """Relay `{messages, model?}` to the completion API."""
    try:
        client = client_factory()
        if not client.configured:
            return json_response({"error": "Missing OPENROUTER_API_KEY secret"}, 400)

        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            body = None

        messages = body.get("messages") if isinstance(body, dict) else None
        if not isinstance(messages, list) or not messages:
            return json_response({"error": "'messages' array is required"}, 400)

        model = body.get("model")
        if not isinstance(model, str):
            model = None

        try:
            content = await client.complete(messages, model=model)
        except UpstreamError as e:
            logger.error(f"Upstream failure in generate-chat: {e} (status={e.status_code})")
            return json_response({"error": "Upstream error"}, 500)

        return json_response({"content": content})
    except Exception as e:
        logger.exception("Error in generate-chat")
        return json_response({"error": str(e) or "Unknown error"}, 500)


if __name__ == "__main__":
    import uvicorn

    settings = RelaySettings()
    uvicorn.run(app, host=settings.host, port=settings.port)
