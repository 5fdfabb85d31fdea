"""FastAPI application hosting chat views."""

import asyncio

from fastapi import Depends, FastAPI, HTTPException, Header, Request
from fastapi.middleware.cors import CORSMiddleware

from chatrelay.config import settings
from chatrelay.db import db
from chatrelay.models import (
    OpenViewResponse,
    SendMessageRequest,
    SendMessageResponse,
)
from chatrelay.realtime import message_feed
from chatrelay.services.relay_client import get_relay_client
from chatrelay.services.views import ChatView, ViewRegistry, ViewUnavailable
from chatrelay.sse import create_sse_response, view_event_stream

app = FastAPI(
    title="Chatrelay API",
    description="Authenticated chat views backed by the generate-chat relay",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_views: ViewRegistry | None = None
_reaper: asyncio.Task | None = None


def get_views() -> ViewRegistry:
    """Get the process-wide view registry."""
    global _views
    if _views is None:
        _views = ViewRegistry(
            db=db,
            relay=get_relay_client(),
            feed=message_feed,
            context_window=settings.context_window,
            model=settings.relay_model,
            queue_size=settings.view_queue_size,
            idle_timeout=settings.view_idle_timeout,
        )
    return _views


def get_user_id(user_id: str | None = Header(alias="X-User-ID", default=None)) -> str:
    """Identity set by the authenticating proxy. Views need a signed-in user."""
    if not user_id:
        raise HTTPException(status_code=401, detail="Not signed in")
    return user_id


def get_view(
    view_id: str,
    user_id: str = Depends(get_user_id),
    views: ViewRegistry = Depends(get_views),
) -> ChatView:
    view = views.get(view_id, user_id)
    if view is None:
        raise HTTPException(status_code=404, detail="View not found")
    return view


@app.on_event("startup")
async def startup_event():
    """Connect to PostgreSQL, create tables and start reaping idle views."""
    global _reaper
    await db.connect()
    await db.ensure_tables_exist()
    _reaper = asyncio.create_task(
        get_views().reap_forever(interval=settings.view_reap_interval)
    )


@app.on_event("shutdown")
async def shutdown_event():
    """Tear down open views and close the pool."""
    if _reaper is not None:
        _reaper.cancel()
    await get_views().close_all()
    await db.disconnect()


# ============= Health & Info =============


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


# ============= Chat Views =============


@app.post("/views", response_model=OpenViewResponse)
async def open_view(
    user_id: str = Depends(get_user_id),
    views: ViewRegistry = Depends(get_views),
):
    """Mount a chat view: find or create the conversation and load it."""
    try:
        view = await views.open(user_id)
    except ViewUnavailable as e:
        raise HTTPException(status_code=503, detail=f"Chat unavailable: {e}")

    orchestrator = view.orchestrator
    return OpenViewResponse(
        view_id=view.id,
        conversation=orchestrator.conversation,
        messages=orchestrator.messages,
    )


@app.get("/views/{view_id}/events")
async def view_events(
    request: Request,
    view: ChatView = Depends(get_view),
    views: ViewRegistry = Depends(get_views),
):
    """Stream new messages and notices for a view."""
    return create_sse_response(
        view_event_stream(
            view,
            views,
            request,
            heartbeat_interval=settings.sse_heartbeat_interval,
        )
    )


@app.post("/views/{view_id}/messages", response_model=SendMessageResponse)
async def send_message(
    request: SendMessageRequest,
    view: ChatView = Depends(get_view),
):
    """Send a message from the view and relay it to the model."""
    message = await view.orchestrator.send(request.content)
    return SendMessageResponse(sent=message is not None, message=message)


@app.delete("/views/{view_id}")
async def close_view(
    view: ChatView = Depends(get_view),
    views: ViewRegistry = Depends(get_views),
):
    """Tear a view down and release its subscription."""
    await views.close(view.id)
    return {"status": "closed"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)
