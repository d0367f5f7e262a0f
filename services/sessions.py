"""
Session issuing.

Sessions are minted by a dedicated session service. When no session
service URL is configured, LocalSessionIssuer mints them into SQLite.
"""
import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

import httpx

import config
from db import get_cursor
from services.errors import UpstreamError

logger = logging.getLogger(__name__)


@dataclass
class SessionGrant:
    token: str
    session_id: str


class SessionIssuer(Protocol):
    def create(self, user_id: str, ip_address: Optional[str], device: Optional[str]) -> SessionGrant: ...

    def revoke(self, session_id: str) -> bool: ...


class SessionClient:
    """Talks to the remote session service over REST."""

    def __init__(self, base_url: str = config.SESSION_SERVICE_URL, client: httpx.Client | None = None):
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.Client(timeout=config.HTTP_TIMEOUT_SECONDS)

    def create(self, user_id: str, ip_address: Optional[str], device: Optional[str]) -> SessionGrant:
        payload = {"userId": user_id, "ipAddress": ip_address, "deviceInfo": device}
        try:
            response = self.client.post(f"{self.base_url}/sessions", json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Session service failed for user {user_id}: {e}")
            raise UpstreamError("Session service unavailable")

        data = response.json()
        return SessionGrant(token=data["token"], session_id=data["sessionId"])

    def revoke(self, session_id: str) -> bool:
        try:
            response = self.client.delete(f"{self.base_url}/sessions/{session_id}")
        except httpx.HTTPError as e:
            logger.error(f"Session service failed revoking {session_id}: {e}")
            raise UpstreamError("Session service unavailable")
        if response.status_code == 404:
            return False
        if response.is_error:
            raise UpstreamError("Session service rejected logout")
        return True


class LocalSessionIssuer:
    def create(self, user_id: str, ip_address: Optional[str], device: Optional[str]) -> SessionGrant:
        grant = SessionGrant(token=secrets.token_urlsafe(32), session_id=str(uuid.uuid4()))
        with get_cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO sessions (session_id, token, user_id, ip_address, device, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (grant.session_id, grant.token, user_id, ip_address, device,
                 datetime.now().isoformat()),
            )
        return grant

    def revoke(self, session_id: str) -> bool:
        with get_cursor() as cursor:
            cursor.execute(
                "UPDATE sessions SET revoked_at = ? WHERE session_id = ? AND revoked_at IS NULL",
                (datetime.now().isoformat(), session_id),
            )
            return cursor.rowcount > 0
