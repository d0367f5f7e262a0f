"""
Profile storage and completeness rules.

Profile documents belong to the user-profile service; the auth service only
asks whether they exist and whether they hold the fields a role needs.
"""
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Protocol

import httpx

import config
from db import get_cursor
from models import UserType
from services.errors import UpstreamError

logger = logging.getLogger(__name__)


REQUIRED_FIELDS = {
    UserType.CUSTOMER: (["firstName", "lastName", "contactNumber"], "basic profile information"),
    UserType.RESTAURANT: (
        ["restaurantName", "restaurantLicenseNumber", "cuisineTypeIds", "restaurantTypeId"],
        "restaurant details",
    ),
    UserType.DRIVER: (["vehicleNumber", "vehicleTypeId"], "vehicle information"),
}


class ProfileServiceUnavailable(UpstreamError):
    pass


@dataclass
class ProfileCompletion:
    is_complete: bool
    missing_fields: list[str] = field(default_factory=list)
    available: bool = True


def evaluate_profile(user_type: UserType, profile: Optional[dict]) -> ProfileCompletion:
    if user_type == UserType.PENDING:
        return ProfileCompletion(False, ["account type"])
    if not profile:
        return ProfileCompletion(False, ["profile data"])

    required, label = REQUIRED_FIELDS[user_type]
    if all(profile.get(name) for name in required):
        return ProfileCompletion(True)
    return ProfileCompletion(False, [label])


class ProfileStore(Protocol):
    def get(self, user_id: str) -> Optional[dict]: ...

    def get_by_email(self, email: str) -> Optional[dict]: ...

    def save(self, user_id: str, email: str, fields: dict) -> dict: ...


class HttpProfileStore:
    def __init__(self, base_url: str = config.USER_SERVICE_URL, client: httpx.Client | None = None):
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.Client(timeout=config.HTTP_TIMEOUT_SECONDS)

    def _fetch(self, url: str) -> Optional[dict]:
        try:
            response = self.client.get(url)
        except httpx.HTTPError as e:
            logger.warning(f"User service request failed: {e}")
            raise ProfileServiceUnavailable("User service unavailable")
        if response.status_code == 404:
            return None
        if response.is_error:
            logger.warning(f"User service answered {response.status_code} for {url}")
            raise ProfileServiceUnavailable("User service unavailable")
        try:
            return response.json() or None
        except ValueError:
            logger.warning(f"User service sent a non-JSON body for {url}")
            raise ProfileServiceUnavailable("User service unavailable")

    def get(self, user_id: str) -> Optional[dict]:
        return self._fetch(f"{self.base_url}/{user_id}")

    def get_by_email(self, email: str) -> Optional[dict]:
        return self._fetch(f"{self.base_url}/email/{email}")

    def save(self, user_id: str, email: str, fields: dict) -> dict:
        payload = {**fields, "id": user_id, "email": email}
        try:
            response = self.client.put(f"{self.base_url}/{user_id}", json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"User service rejected profile for {user_id}: {e}")
            raise ProfileServiceUnavailable("User service unavailable")
        try:
            return response.json()
        except ValueError:
            logger.error(f"User service sent a non-JSON body for profile {user_id}")
            raise ProfileServiceUnavailable("User service unavailable")


class SqliteProfileStore:
    def _row_to_profile(self, row) -> Optional[dict]:
        if not row:
            return None
        return {**json.loads(row["data"]), "id": row["user_id"], "email": row["email"]}

    def get(self, user_id: str) -> Optional[dict]:
        with get_cursor() as cursor:
            cursor.execute("SELECT * FROM profiles WHERE user_id = ?", (user_id,))
            return self._row_to_profile(cursor.fetchone())

    def get_by_email(self, email: str) -> Optional[dict]:
        with get_cursor() as cursor:
            cursor.execute("SELECT * FROM profiles WHERE email = ?", (email,))
            return self._row_to_profile(cursor.fetchone())

    def save(self, user_id: str, email: str, fields: dict) -> dict:
        """Merge fields into the stored profile, creating it when absent."""
        with get_cursor() as cursor:
            cursor.execute("SELECT data FROM profiles WHERE user_id = ?", (user_id,))
            row = cursor.fetchone()
            data = json.loads(row["data"]) if row else {}
            data.update({k: v for k, v in fields.items() if v is not None})
            cursor.execute(
                """
                INSERT INTO profiles (user_id, email, data, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    email = excluded.email,
                    data = excluded.data,
                    updated_at = excluded.updated_at
                """,
                (user_id, email, json.dumps(data), datetime.now().isoformat()),
            )
        return {**data, "id": user_id, "email": email}
