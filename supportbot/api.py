"""
HTTP endpoints for the chat presenter.

The web UI posts user input to /v1/messages and renders the returned rows
as a full replacement of its message list.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Request

from .context import AppContext
from .models import (
    ChatReply,
    MessagesResponse,
    SendMessageRequest,
    WindowPosition,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _context(request: Request) -> AppContext:
    return request.app.state.context


def _messages_response(ctx: AppContext) -> MessagesResponse:
    outcome = ctx.presenter.last_outcome
    return MessagesResponse(
        rows=ctx.presenter.rows,
        run_status=outcome.kind.value if outcome else None,
    )


@router.get("/v1/messages", response_model=MessagesResponse)
async def get_messages(request: Request):
    """Rows from the most recent notification."""
    return _messages_response(_context(request))


@router.post("/v1/messages", response_model=MessagesResponse)
async def send_message(body: SendMessageRequest, request: Request):
    """
    Send a customer message and wait for the run to finish.

    Sends are serialized; a second request waits for the first to finish.
    """
    ctx = _context(request)
    async with ctx.send_lock:
        outcome = await ctx.presenter.send(body.content)
    logger.info(f"Message handled: run {outcome.run.id} -> {outcome.kind.value}")
    return _messages_response(ctx)


@router.post("/v1/session/reset", response_model=MessagesResponse)
async def reset_session(request: Request):
    """Drop the current thread and re-initialize the assistant."""
    ctx = _context(request)
    async with ctx.send_lock:
        await ctx.presenter.reset()
    return _messages_response(ctx)


@router.post("/v1/chat", response_model=ChatReply)
async def quick_chat(body: SendMessageRequest, request: Request):
    """Single chat-completion turn without a remote thread."""
    ctx = _context(request)
    async with ctx.send_lock:
        outcome = await ctx.chat_session.add_message(body.content)
    return ChatReply(
        finish_reason=outcome.finish_reason.value,
        content=outcome.content,
        error=str(outcome.error) if outcome.error else None,
    )


@router.get("/v1/window/position", response_model=Optional[WindowPosition])
async def get_window_position(request: Request):
    """Saved window position, null when none is stored."""
    position = _context(request).window_positions.get_position()
    if position is None:
        return None
    return WindowPosition(x=position[0], y=position[1])


@router.put("/v1/window/position", response_model=WindowPosition)
async def save_window_position(body: WindowPosition, request: Request):
    _context(request).window_positions.save_position(body.x, body.y)
    return body
