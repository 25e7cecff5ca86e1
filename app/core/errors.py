"""
Error taxonomy for the chat relay.

Identity and login errors are answered on the request's reply; send and
broadcast failures have no reply channel and only reach the log.
"""


class ChatError(Exception):
    """Base class for chat domain errors."""

    # token shown to the client when the error travels back on a reply
    public_message = "錯誤"

    def __init__(self, message: str = "", public_message: str | None = None):
        super().__init__(message or self.public_message)
        if public_message is not None:
            self.public_message = public_message


class InvalidInviteCode(ChatError):
    public_message = "邀請碼無效"

    def __init__(self, code: str):
        super().__init__(f"Invite code {code!r} does not match any user")
        self.code = code


class NotAuthenticated(ChatError):
    public_message = "錯誤"


class PersistenceError(ChatError):
    public_message = "登入失敗，請稍後再試"


class ConcurrentIdentityCreation(ChatError):
    """A unique constraint fired while inserting a user; re-read and retry."""


class ReservedName(ChatError):
    public_message = "此名稱無法使用"

    def __init__(self, name: str):
        super().__init__(f"Name {name!r} is reserved")
        self.name = name
