from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from app.core.errors import PersistenceError
from app.db.types import utc_now
from app.models.message import Message


def append(
    session: Session, user: str, text: str, time: Optional[datetime] = None
) -> Message:
    """
    Archive a chat message. `time` defaults to the archive's clock.
    Raises PersistenceError if the store rejects or cannot take the write.
    """
    message = Message(user=user, text=text, time=time or utc_now())
    session.add(message)
    try:
        session.commit()
        session.refresh(message)
    except SQLAlchemyError as exc:
        session.rollback()
        raise PersistenceError(f"Could not archive message from {user!r}") from exc
    return message


def recent(session: Session, limit: int) -> List[Message]:
    """
    Return the `limit` most recent messages, oldest first.
    Equal timestamps keep insertion order via the autoincrement id.
    """
    if limit <= 0:
        return []
    statement = (
        select(Message)
        .order_by(Message.time.desc(), Message.id.desc())
        .limit(limit)
    )
    try:
        newest_first = session.exec(statement).all()
    except SQLAlchemyError as exc:
        raise PersistenceError("Could not load message history") from exc
    return list(reversed(newest_first))
