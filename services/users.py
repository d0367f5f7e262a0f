import sqlite3
import uuid
from datetime import datetime
from typing import Optional

from db import get_cursor
from models import User, UserType, AuthProvider
from services.errors import Conflict


class UserRepository:
    """SQLite access for auth-service accounts."""

    def _row_to_user(self, row) -> Optional[User]:
        return User(**dict(row)) if row else None

    def _find(self, column: str, value: str) -> Optional[User]:
        with get_cursor() as cursor:
            cursor.execute(f"SELECT * FROM users WHERE {column} = ?", (value,))
            return self._row_to_user(cursor.fetchone())

    def get(self, user_id: str) -> Optional[User]:
        return self._find("user_id", user_id)

    def find_by_email(self, email: str) -> Optional[User]:
        return self._find("email", email.lower())

    def find_by_google_id(self, google_id: str) -> Optional[User]:
        return self._find("google_id", google_id)

    def create(
        self,
        email: str,
        user_type: UserType,
        password_hash: Optional[str] = None,
        google_id: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        profile_image: Optional[str] = None,
        is_profile_complete: bool = False,
    ) -> User:
        now = datetime.now()
        user = User(
            user_id=str(uuid.uuid4()),
            email=email.lower(),
            password_hash=password_hash,
            user_type=user_type,
            google_id=google_id,
            is_google_user=google_id is not None,
            auth_provider=AuthProvider.GOOGLE if google_id else AuthProvider.LOCAL,
            first_name=first_name,
            last_name=last_name,
            profile_image=profile_image,
            is_profile_complete=is_profile_complete,
            created_at=now,
            updated_at=now,
        )
        try:
            with get_cursor() as cursor:
                cursor.execute(
                    """
                    INSERT INTO users
                    (user_id, email, password_hash, user_type, google_id, is_google_user,
                     auth_provider, first_name, last_name, profile_image,
                     is_profile_complete, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (user.user_id, user.email, user.password_hash, user.user_type.value,
                     user.google_id, user.is_google_user, user.auth_provider.value,
                     user.first_name, user.last_name, user.profile_image,
                     user.is_profile_complete, now.isoformat(), now.isoformat()),
                )
        except sqlite3.IntegrityError:
            raise Conflict("Email already registered")
        return user

    def update(self, user_id: str, **fields) -> Optional[User]:
        if not fields:
            return self.get(user_id)
        values = {
            k: (v.value if hasattr(v, "value") else v) for k, v in fields.items()
        }
        values["updated_at"] = datetime.now().isoformat()
        assignments = ", ".join(f"{k} = ?" for k in values)
        with get_cursor() as cursor:
            cursor.execute(
                f"UPDATE users SET {assignments} WHERE user_id = ?",
                (*values.values(), user_id),
            )
        return self.get(user_id)

    def delete(self, user_id: str) -> bool:
        with get_cursor() as cursor:
            cursor.execute("DELETE FROM users WHERE user_id = ?", (user_id,))
            return cursor.rowcount > 0

    def link_google(self, user_id: str, google_id: str) -> Optional[User]:
        return self.update(
            user_id,
            google_id=google_id,
            is_google_user=True,
            auth_provider=AuthProvider.GOOGLE,
        )

    def record_event(
        self,
        user_id: Optional[str],
        event_type: str,
        status: str,
        ip_address: Optional[str],
        device: Optional[str],
    ):
        with get_cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO auth_events
                (event_id, user_id, event_type, status, ip_address, device, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (str(uuid.uuid4()), user_id, event_type, status, ip_address, device,
                 datetime.now().isoformat()),
            )
