"""
Wire format for the chat WebSocket.

Every frame is a JSON object with an `event` name. Client frames may carry an
`id`, which is echoed on the reply so callers can match request and response.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
)

from app.models.message import Message
from app.models.user import NAME_MAX_LENGTH, User

RequestId = Optional[Union[int, str]]

# outbound event names
MESSAGE_EVENT = "message"
ERROR_EVENT = "error"

# client-facing texts
WELCOME_TEMPLATE = "歡迎 {name} 加入聊天室！"
DEPARTURE_TEMPLATE = "{name} 已離開聊天室"
LOGIN_FAILED = "登入失敗，請稍後再試"


class LoginData(BaseModel):
    name: str = Field(
        min_length=1,
        max_length=NAME_MAX_LENGTH,
        validation_alias=AliasChoices("name", "username"),
    )
    invite_code: Optional[str] = Field(
        default=None,
        max_length=16,
        validation_alias=AliasChoices("inviteCode", "invite_code"),
    )

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("invite_code", mode="before")
    @classmethod
    def _blank_code_is_absent(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value


class SendMessageData(BaseModel):
    user: str = Field(min_length=1, max_length=NAME_MAX_LENGTH)
    text: str = Field(min_length=1)


class LoginRequest(BaseModel):
    event: Literal["login"]
    id: RequestId = None
    data: LoginData


class SendMessageRequest(BaseModel):
    event: Literal["sendMessage"]
    id: RequestId = None
    data: SendMessageData


class LoadMessagesRequest(BaseModel):
    event: Literal["loadMessages"]
    id: RequestId = None
    data: Optional[Dict[str, Any]] = None


class GetInviteCodeRequest(BaseModel):
    event: Literal["getInviteCode"]
    id: RequestId = None
    data: Optional[Dict[str, Any]] = None


class LogoutRequest(BaseModel):
    event: Literal["logout"]
    id: RequestId = None
    data: Optional[Dict[str, Any]] = None


ClientEvent = Annotated[
    Union[
        LoginRequest,
        SendMessageRequest,
        LoadMessagesRequest,
        GetInviteCodeRequest,
        LogoutRequest,
    ],
    Field(discriminator="event"),
]

client_event_adapter: TypeAdapter[ClientEvent] = TypeAdapter(ClientEvent)

CLIENT_EVENT_NAMES = frozenset(
    ["login", "sendMessage", "loadMessages", "getInviteCode", "logout"]
)


def parse_client_event(raw: str) -> ClientEvent:
    """Validate one inbound text frame. Raises pydantic.ValidationError."""
    return client_event_adapter.validate_json(raw)


class Envelope(BaseModel):
    """Just the routing fields of a frame, for answering frames that fail validation."""

    event: Optional[str] = None
    id: RequestId = None


def peek_envelope(raw: str) -> Envelope:
    try:
        return Envelope.model_validate_json(raw)
    except ValidationError:
        return Envelope()


def is_client_event(name: Optional[str]) -> bool:
    return name in CLIENT_EVENT_NAMES


class UserPublic(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    invite_code: str = Field(serialization_alias="inviteCode")

    @classmethod
    def from_user(cls, user: User) -> "UserPublic":
        return cls(name=user.name, invite_code=user.invite_code)


class LoginResponse(BaseModel):
    user: UserPublic
    inviter: Optional[str] = None


class ErrorResponse(BaseModel):
    error: str


class MessageOut(BaseModel):
    user: str
    text: str
    time: datetime

    @field_validator("time")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # stored times are UTC even when the driver hands them back naive
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @classmethod
    def from_message(cls, message: Message) -> "MessageOut":
        return cls(user=message.user, text=message.text, time=message.time)


def encode_payload(payload: Any) -> Any:
    """Turn models (or lists of them) into JSON-ready values."""
    if isinstance(payload, BaseModel):
        return payload.model_dump(mode="json", by_alias=True)
    if isinstance(payload, list):
        return [encode_payload(item) for item in payload]
    return payload


def make_frame(event: str, payload: Any = None, request_id: RequestId = None) -> Dict[str, Any]:
    frame: Dict[str, Any] = {"event": event, "data": encode_payload(payload)}
    if request_id is not None:
        frame["id"] = request_id
    return frame


def history_payload(messages: List[Message]) -> List[MessageOut]:
    return [MessageOut.from_message(m) for m in messages]
