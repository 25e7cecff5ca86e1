import asyncio

import pytest

from app.core.errors import PersistenceError
from app.models.user import User
from app.realtime.hub import ConnectionHub
from app.realtime.session import ChatSession, SessionState
from app.services import message_service


class FakeSocket:
    def __init__(self, fail: bool = False):
        self.frames = []
        self.fail = fail

    async def send_json(self, frame):
        if self.fail:
            raise RuntimeError("socket closed")
        self.frames.append(frame)

    def texts(self):
        return [f["data"]["text"] for f in self.frames if f["event"] == "message"]


def make_session(hub, session_factory, **kwargs):
    socket = FakeSocket(kwargs.pop("fail", False))
    session = ChatSession(socket, hub, session_factory, **kwargs)
    hub.add(session)
    return session, socket


def test_broadcast_reaches_every_session(session_factory):
    async def scenario():
        hub = ConnectionHub()
        _, a = make_session(hub, session_factory)
        _, b = make_session(hub, session_factory)
        delivered = await hub.broadcast("message", {"user": "Alice", "text": "hi"})
        return delivered, a, b

    delivered, a, b = asyncio.run(scenario())
    assert delivered == 2
    assert a.frames == b.frames == [{"event": "message", "data": {"user": "Alice", "text": "hi"}}]


def test_broadcast_drops_dead_sessions_and_keeps_going(session_factory):
    async def scenario():
        hub = ConnectionHub()
        dead, _ = make_session(hub, session_factory, fail=True)
        _, alive = make_session(hub, session_factory)
        delivered = await hub.broadcast_system("ping")
        return hub, dead, delivered, alive

    hub, dead, delivered, alive = asyncio.run(scenario())
    assert delivered == 1
    assert dead not in hub
    assert len(hub) == 1
    assert alive.texts() == ["ping"]
    assert alive.frames[0]["data"]["user"] == "系統"


def test_single_origin_order_is_preserved(session_factory):
    async def scenario():
        hub = ConnectionHub()
        sockets = [make_session(hub, session_factory)[1] for _ in range(3)]
        for i in range(10):
            await hub.broadcast_system(f"m{i}")
        return sockets

    for socket in asyncio.run(scenario()):
        assert socket.texts() == [f"m{i}" for i in range(10)]


def test_emit_to_one_only_reaches_target(session_factory):
    async def scenario():
        hub = ConnectionHub()
        target, a = make_session(hub, session_factory)
        _, b = make_session(hub, session_factory)
        await hub.emit_to_one(target, "loadMessages", [], request_id=7)
        return a, b

    a, b = asyncio.run(scenario())
    assert a.frames == [{"event": "loadMessages", "data": [], "id": 7}]
    assert b.frames == []


def test_anonymous_disconnect_is_silent(session_factory):
    async def scenario():
        hub = ConnectionHub()
        leaving, _ = make_session(hub, session_factory)
        _, observer = make_session(hub, session_factory)
        await leaving.disconnect()
        return hub, leaving, observer

    hub, leaving, observer = asyncio.run(scenario())
    assert observer.frames == []
    assert leaving.state is SessionState.CLOSED
    assert leaving not in hub


def test_authenticated_disconnect_announces_once(session_factory):
    async def scenario():
        hub = ConnectionHub()
        leaving, _ = make_session(hub, session_factory)
        _, observer = make_session(hub, session_factory)
        leaving.user = User(name="Bob", invite_code="BOB123")
        await leaving.disconnect()
        await leaving.disconnect()
        return observer

    observer = asyncio.run(scenario())
    assert observer.texts() == ["Bob 已離開聊天室"]


def test_logout_returns_session_to_anonymous(session_factory):
    async def scenario():
        hub = ConnectionHub()
        chat, socket = make_session(hub, session_factory)
        chat.user = User(name="Alice", invite_code="ALI123")
        first = await chat.logout()
        second = await chat.logout()
        return chat, socket, first, second

    chat, socket, first, second = asyncio.run(scenario())
    assert (first, second) == (True, False)
    assert chat.state is SessionState.ANONYMOUS
    # the leaving session still sees its own departure
    assert socket.texts() == ["Alice 已離開聊天室"]


def test_archive_failure_suppresses_broadcast(session_factory, monkeypatch):
    def broken_append(session, user, text, time=None):
        raise PersistenceError("store unreachable")

    monkeypatch.setattr(message_service, "append", broken_append)

    async def scenario():
        hub = ConnectionHub()
        chat, socket = make_session(hub, session_factory)
        result = await chat.send_message("Alice", "lost")
        return result, socket

    result, socket = asyncio.run(scenario())
    assert result is None
    assert socket.frames == []


def test_bound_sender_uses_session_identity(session_factory):
    async def scenario():
        hub = ConnectionHub()
        chat, socket = make_session(hub, session_factory, bind_sender=True)
        dropped = await chat.send_message("Alice", "from nobody")
        chat.user = User(name="Bob", invite_code="BOB123")
        sent = await chat.send_message("Alice", "spoofed")
        return dropped, sent, socket

    dropped, sent, socket = asyncio.run(scenario())
    assert dropped is None
    assert sent.user == "Bob"
    assert [f["data"]["user"] for f in socket.frames] == ["Bob"]


def test_unbound_sender_keeps_supplied_name(session_factory):
    async def scenario():
        hub = ConnectionHub()
        chat, socket = make_session(hub, session_factory, bind_sender=False)
        return await chat.send_message("Carol", "hello"), socket

    sent, socket = asyncio.run(scenario())
    assert sent.user == "Carol"
    assert socket.frames[0]["data"]["text"] == "hello"


def test_failed_login_reply_leaves_no_departure_behind(session_factory):
    async def scenario():
        hub = ConnectionHub()
        chat, _ = make_session(hub, session_factory, fail=True)
        _, observer = make_session(hub, session_factory)
        with pytest.raises(RuntimeError):
            await chat.login("Alice")
        await chat.disconnect()
        return chat, observer

    chat, observer = asyncio.run(scenario())
    assert chat.user is None
    assert observer.frames == []


def test_login_replies_then_announces_arrival(session_factory):
    async def scenario():
        hub = ConnectionHub()
        chat, socket = make_session(hub, session_factory)
        await chat.login("Alice", request_id=1)
        await chat.disconnect()
        return socket

    socket = asyncio.run(scenario())
    assert socket.frames[0]["event"] == "login"
    assert socket.texts() == ["歡迎 Alice 加入聊天室！"]


def test_zero_history_limit_is_respected(session_factory):
    async def scenario():
        hub = ConnectionHub()
        chat, socket = make_session(hub, session_factory, history_limit=0)
        await chat.send_message("Alice", "hello")
        loaded = await chat.load_messages(request_id=3)
        return chat, loaded, socket

    chat, loaded, socket = asyncio.run(scenario())
    assert chat.history_limit == 0
    assert loaded == []
    assert socket.frames[-1] == {"event": "loadMessages", "data": [], "id": 3}


def test_system_message_time_is_utc(session_factory):
    async def scenario():
        hub = ConnectionHub()
        _, socket = make_session(hub, session_factory)
        await hub.broadcast_system("ping")
        return socket

    socket = asyncio.run(scenario())
    assert socket.frames[0]["data"]["time"].endswith("Z")
