import pytest
from fastapi.testclient import TestClient

import db
from api import app, state
from services.tokens import GoogleIdentity, TokenVerificationError


class FakeVerifier:
    """Maps tokens to identities; anything else fails verification."""

    def __init__(self):
        self.identities: dict[str, GoogleIdentity] = {}
        self.calls = []

    def add(self, token: str, email: str, subject: str, name: str = "Ada Lovelace",
            picture: str | None = "https://example.com/ada.png") -> str:
        self.identities[token] = GoogleIdentity(email=email, subject=subject, name=name, picture=picture)
        return token

    def verify(self, token: str) -> GoogleIdentity:
        self.calls.append(token)
        if token not in self.identities:
            raise TokenVerificationError("Invalid Google token")
        return self.identities[token]


class RecordingSender:
    def __init__(self, channel: str, fail: bool = False):
        self.channel = channel
        self.fail = fail
        self.sent = []

    async def send(self, recipient: str, subject: str, message: str) -> None:
        if self.fail:
            raise RuntimeError(f"{self.channel} gateway down")
        self.sent.append((recipient, subject, message))


class FakeSocket:
    def __init__(self, broken: bool = False):
        self.broken = broken
        self.messages = []

    async def send_json(self, data) -> None:
        if self.broken:
            raise ConnectionError("socket closed")
        self.messages.append(data)


@pytest.fixture(autouse=True)
def temp_db(tmp_path, monkeypatch):
    """Fresh SQLite database per test."""
    monkeypatch.setattr(db, "DATABASE_PATH", tmp_path / "test.db")
    db.init_database()
    yield tmp_path / "test.db"


@pytest.fixture
def verifier():
    return FakeVerifier()


@pytest.fixture
def email_sender():
    return RecordingSender("email")


@pytest.fixture
def sms_sender():
    return RecordingSender("sms")


@pytest.fixture
def app_state(verifier, email_sender, sms_sender):
    state.reset()
    state.override(
        token_verifier=verifier,
        email_sender=email_sender,
        sms_sender=sms_sender,
    )
    yield state
    state.reset()


@pytest.fixture
def client(app_state):
    with TestClient(app) as c:
        yield c
