"""
Broadcast fanout for connected chat sessions.

The hub is the only registry of live sessions. It is mutated on
connect/disconnect and read (as a snapshot) on every broadcast, so a session
joining mid-broadcast either gets the whole frame or none of it.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Dict, List

from app.core.config import settings
from app.db.types import utc_now
from app.realtime.protocol import MESSAGE_EVENT, MessageOut, make_frame

if TYPE_CHECKING:
    from app.realtime.session import ChatSession

logger = logging.getLogger(__name__)


class ConnectionHub:
    """Registry of active sessions plus broadcast helpers."""

    def __init__(self) -> None:
        self._sessions: Dict[str, "ChatSession"] = {}

    def add(self, session: "ChatSession") -> None:
        self._sessions[session.id] = session
        logger.debug("Session %s registered (%s active)", session.id, len(self._sessions))

    def remove(self, session: "ChatSession") -> None:
        if self._sessions.pop(session.id, None) is not None:
            logger.debug("Session %s removed (%s active)", session.id, len(self._sessions))

    def snapshot(self) -> List["ChatSession"]:
        return list(self._sessions.values())

    def __contains__(self, session: "ChatSession") -> bool:
        return session.id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    async def broadcast(self, event: str, payload: Any = None) -> int:
        """
        Deliver one frame to every session connected at dispatch time,
        the sender included. Returns the number of successful deliveries.
        """
        frame = make_frame(event, payload)
        targets = self.snapshot()
        if not targets:
            return 0

        results = await asyncio.gather(
            *(target.send_frame(frame) for target in targets),
            return_exceptions=True,
        )

        delivered = 0
        for target, result in zip(targets, results):
            if isinstance(result, BaseException):
                logger.error("Failed to broadcast to session %s: %s", target.id, result)
                # its own handler will run disconnect; stop fanning out to it now
                self.remove(target)
            else:
                delivered += 1
        return delivered

    async def broadcast_system(self, text: str) -> int:
        """Broadcast a chat message from the reserved system sender."""
        message = MessageOut(user=settings.system_user, text=text, time=utc_now())
        return await self.broadcast(MESSAGE_EVENT, message)

    async def emit_to_one(
        self, session: "ChatSession", event: str, payload: Any = None, request_id: Any = None
    ) -> None:
        """Deliver a frame to `session` only (replies, history replay)."""
        await session.send_frame(make_frame(event, payload, request_id))


hub = ConnectionHub()
