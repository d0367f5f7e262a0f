import asyncio

import httpx
import pytest

import config
from db import get_cursor
from services.connections import ConnectionManager
from services.notifications import Notifier, TwilioSmsSender, render_template
from tests.conftest import FakeSocket, RecordingSender


def recorded(channel: str | None = None) -> list[tuple]:
    query = "SELECT channel, recipient, status FROM notifications"
    params = ()
    if channel:
        query += " WHERE channel = ?"
        params = (channel,)
    with get_cursor() as cursor:
        cursor.execute(query + " ORDER BY created_at", params)
        return [tuple(row) for row in cursor.fetchall()]


# =============================================================================
# Connection registry
# =============================================================================

def test_last_registration_wins():
    manager = ConnectionManager()
    old, new = FakeSocket(), FakeSocket()
    manager.register("user-1", old)
    manager.register("user-1", new)

    assert asyncio.run(manager.send("user-1", {"type": "ping"})) is True
    assert new.messages == [{"type": "ping"}]
    assert old.messages == []


def test_deregister_only_removes_matching_socket():
    manager = ConnectionManager()
    old, new = FakeSocket(), FakeSocket()
    manager.register("user-1", old)
    manager.register("user-1", new)

    # The replaced socket closing must not drop the live one
    assert manager.deregister(old) is None
    assert manager.is_connected("user-1")
    assert manager.deregister(new) == "user-1"
    assert manager.connected_users == []


def test_dead_socket_is_dropped_on_send():
    manager = ConnectionManager()
    manager.register("user-1", FakeSocket(broken=True))

    assert asyncio.run(manager.send("user-1", {"type": "x"})) is False
    assert not manager.is_connected("user-1")
    assert asyncio.run(manager.send("nobody", {"type": "x"})) is False


# =============================================================================
# Notifier
# =============================================================================

def test_notify_fans_out_and_records_every_attempt():
    email, sms = RecordingSender("email"), RecordingSender("sms")
    connections = ConnectionManager()
    socket = FakeSocket()
    connections.register("user-1", socket)
    notifier = Notifier(email, sms, connections)

    results = asyncio.run(notifier.notify(
        subject="Order update", message="On its way",
        user_id="user-1", email="ada@example.com", phone="+94770000000",
    ))

    assert results == {"websocket": True, "email": True, "sms": True}
    assert email.sent == [("ada@example.com", "Order update", "On its way")]
    assert sms.sent[0][0] == "+94770000000"
    assert socket.messages[0]["message"] == "On its way"
    assert sorted(recorded()) == [
        ("email", "ada@example.com", "sent"),
        ("sms", "+94770000000", "sent"),
        ("websocket", "user-1", "sent"),
    ]


def test_failed_channel_is_recorded_not_raised():
    notifier = Notifier(RecordingSender("email", fail=True), RecordingSender("sms"), ConnectionManager())

    results = asyncio.run(notifier.notify(
        subject="Hi", message="Hello", user_id="offline-user", email="ada@example.com",
    ))

    assert results == {"websocket": False, "email": False}
    assert ("email", "ada@example.com", "failed") in recorded()
    assert ("websocket", "offline-user", "offline") in recorded()
    with get_cursor() as cursor:
        cursor.execute("SELECT error FROM notifications WHERE channel = 'email'")
        assert cursor.fetchone()[0] == "email gateway down"


def test_render_template_leaves_unknown_placeholders():
    assert render_template("Hi ${name}, code ${code}", {"name": "Ada"}) == "Hi Ada, code ${code}"


def test_broadcast_personalises_each_email():
    email = RecordingSender("email")
    notifier = Notifier(email, RecordingSender("sms"), ConnectionManager())

    result = asyncio.run(notifier.broadcast(
        recipients=[
            {"email": "a@example.com", "variables": {"name": "Ada"}},
            {"email": "g@example.com", "variables": {"name": "Grace"}},
        ],
        subject="${promo} for ${name}",
        template="Hello ${name}, use ${promo}",
        shared={"promo": "FREESHIP"},
    ))

    assert result == {"sent": 2, "failed": 0, "failed_recipients": []}
    assert email.sent[1] == ("g@example.com", "FREESHIP for Grace", "Hello Grace, use FREESHIP")


def test_twilio_sender_posts_form_to_messages_api(monkeypatch):
    captured = {}

    def handler(request):
        captured["url"] = str(request.url)
        captured["auth"] = request.headers["Authorization"]
        captured["body"] = request.content.decode()
        return httpx.Response(201, json={"sid": "SM1"})

    sender = TwilioSmsSender("AC123", "secret", "+15550001111", transport=httpx.MockTransport(handler))
    asyncio.run(sender.send("+94770000000", "", "Your order is on its way"))

    assert captured["url"] == f"{config.TWILIO_API_URL}/Accounts/AC123/Messages.json"
    assert captured["auth"].startswith("Basic ")
    assert "To=%2B94770000000" in captured["body"]
    assert "From=%2B15550001111" in captured["body"]


def test_twilio_error_surfaces_to_notifier():
    sender = TwilioSmsSender("AC123", "secret", "+1555", transport=httpx.MockTransport(lambda r: httpx.Response(401)))
    notifier = Notifier(RecordingSender("email"), sender, ConnectionManager())

    assert asyncio.run(notifier.send_sms("+94770000000", "hi")) is False
    assert recorded("sms") == [("sms", "+94770000000", "failed")]


# =============================================================================
# WebSocket endpoint
# =============================================================================

def test_websocket_registration(client, app_state):
    with client.websocket_connect("/ws") as ws:
        ws.send_text("not json")
        assert ws.receive_json() == {"type": "error", "message": "Invalid JSON"}

        ws.send_json({"type": "register", "userId": "user-9"})
        assert ws.receive_json() == {"type": "registered", "userId": "user-9"}
        assert app_state.connections.is_connected("user-9")

        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}

        assert client.get("/stats").json()["connected_users"] == 1


class ScriptedWebSocket(FakeSocket):
    """Replays client frames, then fails the way a dropped transport can."""

    def __init__(self, frames: list[str], error: Exception):
        super().__init__()
        self.frames = list(frames)
        self.error = error

    async def accept(self) -> None:
        pass

    async def receive_text(self) -> str:
        if not self.frames:
            raise self.error
        return self.frames.pop(0)


def test_websocket_deregisters_on_unexpected_error(app_state):
    from api.notifications import websocket_endpoint

    socket = ScriptedWebSocket(['{"type": "register", "userId": "user-7"}'], RuntimeError("transport reset"))

    with pytest.raises(RuntimeError):
        asyncio.run(websocket_endpoint(socket))

    assert socket.messages == [{"type": "registered", "userId": "user-7"}]
    assert not app_state.connections.is_connected("user-7")
