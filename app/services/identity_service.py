import logging
import secrets
import string
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from app.core.config import settings
from app.core.errors import (
    ConcurrentIdentityCreation,
    InvalidInviteCode,
    PersistenceError,
    ReservedName,
)
from app.models.user import User

logger = logging.getLogger(__name__)

INVITE_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_invite_code(length: Optional[int] = None) -> str:
    """
    Draw an invite code uniformly from [A-Z0-9].
    Uniqueness is not checked here; the unique index on user.invite_code is.
    """
    size = length or settings.invite_code_length
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(size))


def find_user_by_name(session: Session, name: str) -> Optional[User]:
    return session.exec(select(User).where(User.name == name)).first()


def find_user_by_invite_code(session: Session, code: str) -> Optional[User]:
    return session.exec(select(User).where(User.invite_code == code)).first()


def validate_invite_code(session: Session, code: str) -> User:
    """Return the user who owns `code`, for display as the inviter."""
    try:
        inviter = find_user_by_invite_code(session, code)
    except SQLAlchemyError as exc:
        raise PersistenceError("Invite code lookup failed") from exc
    if inviter is None:
        raise InvalidInviteCode(code)
    return inviter


def _insert_user(session: Session, name: str) -> User:
    user = User(name=name, invite_code=generate_invite_code())
    session.add(user)
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise ConcurrentIdentityCreation(
            f"Unique constraint hit while creating user {name!r}"
        ) from exc
    session.refresh(user)
    return user


def resolve_or_create(session: Session, name: str) -> User:
    """
    Look the user up by name, creating it with a fresh invite code if absent.

    The unique indexes on name and invite_code are the only serialization
    point: when an insert loses a race (or draws a taken code) the
    transaction is rolled back and the lookup runs again.
    """
    attempts = max(1, settings.max_identity_attempts)
    try:
        for attempt in range(1, attempts + 1):
            user = find_user_by_name(session, name)
            if user is not None:
                return user
            try:
                user = _insert_user(session, name)
            except ConcurrentIdentityCreation:
                logger.info(
                    "Identity insert for %r collided (attempt %s/%s), re-reading",
                    name,
                    attempt,
                    attempts,
                )
                continue
            logger.info("Created user %r with invite code %s", user.name, user.invite_code)
            return user
    except SQLAlchemyError as exc:
        session.rollback()
        raise PersistenceError(f"Could not resolve user {name!r}") from exc

    raise PersistenceError(
        f"Could not create user {name!r} after {attempts} attempts"
    )


def login(
    session: Session, name: str, invite_code: Optional[str] = None
) -> Tuple[User, Optional[User]]:
    """
    Resolve the identity for a login request.
    The system sender name is refused, and the invite code is checked
    before anything is created.
    """
    if name == settings.system_user:
        raise ReservedName(name)
    inviter = validate_invite_code(session, invite_code) if invite_code else None
    user = resolve_or_create(session, name)
    if inviter is not None:
        # creating the user commits, which expires the inviter row
        try:
            session.refresh(inviter)
        except SQLAlchemyError as exc:
            raise PersistenceError("Could not reload inviter") from exc
    return user, inviter
