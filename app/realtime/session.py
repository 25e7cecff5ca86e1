"""
Per-connection session state.

A ChatSession binds one live WebSocket to at most one User. It moves
anonymous -> authenticated -> anonymous (logout) and ends in closed once the
socket goes away. The User row belongs to the identity registry; the session
only keeps a reference to it.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, List, Optional, TypeVar
from uuid import uuid4

from sqlmodel import Session
from starlette.concurrency import run_in_threadpool

from app.core.config import settings
from app.core.errors import (
    ChatError,
    InvalidInviteCode,
    NotAuthenticated,
    PersistenceError,
    ReservedName,
)
from app.models.message import Message
from app.models.user import User
from app.realtime.hub import ConnectionHub
from app.realtime.protocol import (
    DEPARTURE_TEMPLATE,
    LOGIN_FAILED,
    MESSAGE_EVENT,
    WELCOME_TEMPLATE,
    ErrorResponse,
    LoginResponse,
    MessageOut,
    RequestId,
    UserPublic,
    history_payload,
)
from app.services import identity_service, message_service

logger = logging.getLogger(__name__)

T = TypeVar("T")
SessionFactory = Callable[[], Session]


class SessionState(str, Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"
    CLOSED = "closed"


class ChatSession:
    def __init__(
        self,
        websocket: Any,
        hub: ConnectionHub,
        session_factory: SessionFactory,
        bind_sender: Optional[bool] = None,
        history_limit: Optional[int] = None,
    ) -> None:
        self.id = uuid4().hex
        self.websocket = websocket
        self.hub = hub
        self.session_factory = session_factory
        self.bind_sender = settings.bind_sender_to_session if bind_sender is None else bind_sender
        self.history_limit = settings.history_limit if history_limit is None else history_limit
        self.user: Optional[User] = None
        self._closed = False
        self._send_lock = asyncio.Lock()

    @property
    def state(self) -> SessionState:
        if self._closed:
            return SessionState.CLOSED
        if self.user is not None:
            return SessionState.AUTHENTICATED
        return SessionState.ANONYMOUS

    @property
    def is_authenticated(self) -> bool:
        return self.state is SessionState.AUTHENTICATED

    async def send_frame(self, frame: dict) -> None:
        # one writer at a time keeps each origin's frames in issue order
        async with self._send_lock:
            await self.websocket.send_json(frame)

    async def reply(self, event: str, payload: Any = None, request_id: RequestId = None) -> None:
        await self.hub.emit_to_one(self, event, payload, request_id)

    async def _run_db(self, fn: Callable[..., T], *args: Any) -> T:
        """Run a blocking service call with its own DB session off the event loop."""

        def call() -> T:
            with self.session_factory() as db:
                return fn(db, *args)

        return await run_in_threadpool(call)

    async def login(
        self, name: str, invite_code: Optional[str] = None, request_id: RequestId = None
    ) -> Optional[LoginResponse]:
        """
        Resolve the identity, answer the caller, then announce the arrival.
        Failures are answered with an error and leave the session untouched.
        The identity is attached only once the arrival has gone out, so a
        departure is never announced without a matching arrival.
        """
        try:
            user, inviter = await self._run_db(identity_service.login, name, invite_code)
        except (InvalidInviteCode, ReservedName) as exc:
            logger.info("Login for %r rejected: %s", name, exc)
            await self.reply("login", ErrorResponse(error=exc.public_message), request_id)
            return None
        except PersistenceError:
            logger.exception("Login error for %r", name)
            await self.reply("login", ErrorResponse(error=LOGIN_FAILED), request_id)
            return None

        response = LoginResponse(
            user=UserPublic.from_user(user),
            inviter=inviter.name if inviter is not None else None,
        )
        logger.info("User %r logged in on session %s", user.name, self.id)
        await self.reply("login", response, request_id)
        await self.hub.broadcast_system(WELCOME_TEMPLATE.format(name=user.name))
        self.user = user
        return response

    def get_invite_code(self) -> str:
        if self.user is None:
            raise NotAuthenticated("getInviteCode requires a logged-in session")
        return self.user.invite_code

    async def send_message(self, user: str, text: str) -> Optional[Message]:
        """
        Archive then broadcast. There is no reply channel, so a failed
        archive is only logged and the broadcast is skipped.
        """
        sender = user
        if self.bind_sender:
            if self.user is None:
                logger.warning("Dropping message from anonymous session %s", self.id)
                return None
            sender = self.user.name

        try:
            message = await self._run_db(message_service.append, sender, text)
        except PersistenceError:
            logger.exception("Message save error on session %s", self.id)
            return None

        await self.hub.broadcast(MESSAGE_EVENT, MessageOut.from_message(message))
        return message

    async def load_messages(self, request_id: RequestId = None) -> List[Message]:
        try:
            messages = await self._run_db(message_service.recent, self.history_limit)
        except PersistenceError:
            logger.exception("Load messages error on session %s", self.id)
            return []
        await self.reply("loadMessages", history_payload(messages), request_id)
        return messages

    async def logout(self) -> bool:
        """Clear the identity and announce the departure. No-op when anonymous."""
        if self.user is None:
            return False
        name = self.user.name
        logger.info("User %r logged out of session %s", name, self.id)
        await self.hub.broadcast_system(DEPARTURE_TEMPLATE.format(name=name))
        self.user = None
        return True

    async def disconnect(self) -> None:
        """Drop the session; announce the departure only if it had logged in."""
        if self._closed:
            return
        self._closed = True
        self.hub.remove(self)
        user, self.user = self.user, None
        if user is not None:
            await self.hub.broadcast_system(DEPARTURE_TEMPLATE.format(name=user.name))
        logger.info("A user disconnected: %s", self.id)

    async def handle_error(self, event: str, exc: ChatError, request_id: RequestId = None) -> None:
        await self.reply(event, exc.public_message, request_id)
