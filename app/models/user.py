from datetime import datetime
from typing import Optional

from sqlalchemy import Column, String
from sqlmodel import Field, SQLModel

from app.db.types import UTCDateTime, utc_now


# login names and message senders share this bound
NAME_MAX_LENGTH = 120


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(
        sa_column=Column(String(NAME_MAX_LENGTH), unique=True, index=True, nullable=False)
    )
    # referral code handed out at first login, never regenerated
    invite_code: str = Field(
        sa_column=Column(String(16), unique=True, index=True, nullable=False)
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(UTCDateTime(), nullable=False),
    )
