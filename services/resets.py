import uuid
from datetime import datetime, timedelta
from typing import Optional

from db import get_cursor


class PasswordResetRepository:
    """One-time password reset codes. Only the hash of a code is stored."""

    def issue(self, user_id: str, otp_hash: str, ttl_minutes: int) -> str:
        now = datetime.now()
        reset_id = str(uuid.uuid4())
        with get_cursor() as cursor:
            # A new code replaces any the user has not used yet
            cursor.execute(
                "DELETE FROM password_resets WHERE user_id = ? AND used_at IS NULL",
                (user_id,),
            )
            cursor.execute(
                """
                INSERT INTO password_resets
                (reset_id, user_id, otp_hash, attempts, expires_at, created_at)
                VALUES (?, ?, ?, 0, ?, ?)
                """,
                (reset_id, user_id, otp_hash,
                 (now + timedelta(minutes=ttl_minutes)).isoformat(), now.isoformat()),
            )
        return reset_id

    def latest_open(self, user_id: str) -> Optional[dict]:
        with get_cursor() as cursor:
            cursor.execute(
                """
                SELECT * FROM password_resets
                WHERE user_id = ? AND used_at IS NULL
                ORDER BY created_at DESC LIMIT 1
                """,
                (user_id,),
            )
            row = cursor.fetchone()
        return dict(row) if row else None

    def record_failure(self, reset_id: str):
        with get_cursor() as cursor:
            cursor.execute(
                "UPDATE password_resets SET attempts = attempts + 1 WHERE reset_id = ?",
                (reset_id,),
            )

    def mark_verified(self, reset_id: str):
        with get_cursor() as cursor:
            cursor.execute(
                "UPDATE password_resets SET verified_at = ? WHERE reset_id = ?",
                (datetime.now().isoformat(), reset_id),
            )

    def consume(self, reset_id: str) -> bool:
        """Mark a code used. False when another request already used it."""
        with get_cursor() as cursor:
            cursor.execute(
                "UPDATE password_resets SET used_at = ? WHERE reset_id = ? AND used_at IS NULL",
                (datetime.now().isoformat(), reset_id),
            )
            return cursor.rowcount > 0
