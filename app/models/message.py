from datetime import datetime
from typing import Optional

from sqlalchemy import Column, Text
from sqlmodel import Field, SQLModel

from app.db.types import UTCDateTime, utc_now
from app.models.user import NAME_MAX_LENGTH


class Message(SQLModel, table=True):
    # autoincrement id doubles as insertion order for equal timestamps
    id: Optional[int] = Field(default=None, primary_key=True)

    # sender name as supplied at send time, not a foreign key
    user: str = Field(max_length=NAME_MAX_LENGTH)
    text: str = Field(sa_column=Column(Text, nullable=False))
    time: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(UTCDateTime(), nullable=False, index=True),
    )
