from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from app.core.config import settings
from app.db.database import get_session
from app.realtime.protocol import MessageOut, history_payload
from app.services import message_service

router = APIRouter(prefix="/messages", tags=["messages"])


def get_db_session():
    """Provide a scoped session per request."""
    with get_session() as session:
        yield session


@router.get("", response_model=List[MessageOut])
def list_messages(
    limit: Optional[int] = Query(default=None, ge=1),
    session: Session = Depends(get_db_session),
):
    """
    Recent chat history, oldest first. Same view as the loadMessages event;
    `limit` is capped at the configured history size.
    """
    size = min(limit or settings.history_limit, settings.history_limit)
    return history_payload(message_service.recent(session, size))
