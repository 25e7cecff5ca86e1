from typing import Any, Dict

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel, create_engine, Session
from app.core.config import settings


def _connect_args(url: str) -> Dict[str, Any]:
    # Sessions are opened from the threadpool, not the thread that made the pool
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


# Create the engine
engine = create_engine(
    settings.database_url,
    echo=False,
    connect_args=_connect_args(settings.database_url),
)


def init_db() -> None:
    """Create database tables on startup."""
    # Import here to avoid circular import issues
    from app.models.message import Message
    from app.models.user import User
    SQLModel.metadata.create_all(engine)


def ping() -> bool:
    """Return True when the database answers a trivial query."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError:
        return False
    return True


def get_session() -> Session:
    """Return a new SQLModel session."""
    return Session(engine)
