import logging
from typing import Callable

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from sqlmodel import Session

from app.core.errors import NotAuthenticated
from app.db import database
from app.realtime.hub import ConnectionHub, hub
from app.realtime.protocol import (
    ERROR_EVENT,
    ClientEvent,
    ErrorResponse,
    GetInviteCodeRequest,
    LoadMessagesRequest,
    LoginRequest,
    LogoutRequest,
    SendMessageRequest,
    is_client_event,
    parse_client_event,
    peek_envelope,
)
from app.realtime.session import ChatSession, SessionState

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


def get_hub() -> ConnectionHub:
    return hub


def get_session_factory() -> Callable[[], Session]:
    """Factory for per-operation DB sessions; overridden in tests."""
    return database.get_session


async def dispatch(chat: ChatSession, event: ClientEvent) -> None:
    """Route one validated client event to the session."""
    if chat.state is SessionState.CLOSED:
        return

    if isinstance(event, LoginRequest):
        await chat.login(event.data.name, event.data.invite_code, request_id=event.id)
    elif isinstance(event, SendMessageRequest):
        await chat.send_message(event.data.user, event.data.text)
    elif isinstance(event, LoadMessagesRequest):
        await chat.load_messages(request_id=event.id)
    elif isinstance(event, GetInviteCodeRequest):
        try:
            code = chat.get_invite_code()
        except NotAuthenticated as exc:
            logger.info("getInviteCode on anonymous session %s", chat.id)
            await chat.handle_error(event.event, exc, request_id=event.id)
            return
        await chat.reply(event.event, code, request_id=event.id)
    elif isinstance(event, LogoutRequest):
        await chat.logout()


@router.websocket("/ws")
async def chat_socket(
    websocket: WebSocket,
    connections: ConnectionHub = Depends(get_hub),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
):
    """
    One chat connection. Frames are JSON objects like
    {"event": "login", "id": 1, "data": {"name": "Alice", "inviteCode": "AB12CD"}}.
    Events from a connection are handled one at a time, in arrival order.
    """
    await websocket.accept()
    chat = ChatSession(websocket, connections, session_factory)
    connections.add(chat)
    logger.info("A user connected: %s", chat.id)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                event = parse_client_event(raw)
            except ValidationError as exc:
                logger.warning("Invalid frame on session %s: %s", chat.id, exc.errors())
                # reply under the request's own event and id when they are readable
                envelope = peek_envelope(raw)
                event_name = envelope.event if is_client_event(envelope.event) else ERROR_EVENT
                await chat.reply(event_name, ErrorResponse(error="invalid event"), envelope.id)
                continue
            await dispatch(chat, event)
    except WebSocketDisconnect:
        pass
    finally:
        await chat.disconnect()
