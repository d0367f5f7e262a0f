"""
Auth Service

Local sign-up/sign-in, emailed-code password reset and the Google
onboarding flow:

1. Verify the Google token (access token or ID token)
2. Reconcile with a local account (google id first, then email)
3. Issue a session through the session service
4. Report whether the profile service holds a complete profile
"""
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from werkzeug.security import generate_password_hash, check_password_hash

import config
from log import mask
from models import User, UserType
from services.errors import BadRequest, Conflict, NotFound, Unauthorized, UpstreamError
from services.notifications import Notifier
from services.profiles import (
    ProfileCompletion,
    ProfileServiceUnavailable,
    ProfileStore,
    evaluate_profile,
)
from services.resets import PasswordResetRepository
from services.sessions import SessionGrant, SessionIssuer
from services.tokens import TokenVerifier
from services.users import UserRepository

logger = logging.getLogger(__name__)

SELECTABLE_TYPES = (UserType.CUSTOMER, UserType.RESTAURANT, UserType.DRIVER)

INVALID_CODE = "Invalid or expired code"


@dataclass
class GoogleSignIn:
    user: User
    session: SessionGrant
    is_new_user: bool
    profile: ProfileCompletion

    @property
    def profile_status(self) -> str:
        if not self.profile.available:
            return "unavailable"
        return "complete" if self.profile.is_complete else "incomplete"


def parse_user_type(value: Optional[str], allow_pending: bool = False) -> UserType:
    try:
        user_type = UserType((value or "").upper())
    except ValueError:
        raise BadRequest(f"Invalid user type: {value}")
    if user_type == UserType.PENDING and not allow_pending:
        raise BadRequest("An account type must be selected")
    return user_type


class AuthService:
    def __init__(
        self,
        verifier: TokenVerifier,
        sessions: SessionIssuer,
        profiles: ProfileStore,
        users: UserRepository | None = None,
        notifier: Notifier | None = None,
        resets: PasswordResetRepository | None = None,
    ):
        self.verifier = verifier
        self.sessions = sessions
        self.profiles = profiles
        self.users = users or UserRepository()
        self.notifier = notifier
        self.resets = resets or PasswordResetRepository()

    # -------------------------------------------------------------------------
    # Local accounts
    # -------------------------------------------------------------------------

    def sign_up(
        self,
        email: str,
        password: str,
        user_type: str,
        profile_fields: dict | None = None,
    ) -> User:
        if not email or not password:
            raise BadRequest("Email and password are required")
        account_type = parse_user_type(user_type)
        if self.users.find_by_email(email):
            raise BadRequest("Email already registered")

        fields = profile_fields or {}
        user = self.users.create(
            email=email,
            user_type=account_type,
            password_hash=generate_password_hash(password),
            first_name=fields.get("firstName"),
            last_name=fields.get("lastName"),
        )
        try:
            profile = self.profiles.save(user.user_id, user.email, fields)
        except ProfileServiceUnavailable:
            # Drop the account so the sign-up can be retried
            self.users.delete(user.user_id)
            logger.warning(f"Sign-up for {user.user_id} rolled back: profile not saved")
            raise
        if evaluate_profile(account_type, profile).is_complete:
            user = self.users.update(user.user_id, is_profile_complete=True)

        logger.info(f"Registered {account_type.value} account {user.user_id}")
        return user

    def sign_in(
        self,
        email: str,
        password: str,
        ip_address: Optional[str] = None,
        device: Optional[str] = None,
    ) -> tuple[User, SessionGrant]:
        if not email or not password:
            raise BadRequest("Email and password are required")

        user = self.users.find_by_email(email)
        if not user or not user.password_hash:
            # Google-only accounts have no password to check
            self.users.record_event(user.user_id if user else None, "login", "failed", ip_address, device)
            raise Unauthorized("Invalid credentials")
        if not check_password_hash(user.password_hash, password):
            self.users.record_event(user.user_id, "login", "failed", ip_address, device)
            raise Unauthorized("Invalid credentials")

        session = self.sessions.create(user.user_id, ip_address, device)
        self.users.record_event(user.user_id, "login", "success", ip_address, device)
        logger.info(f"User {user.user_id} signed in, session {session.session_id}")
        return user, session

    def logout(self, session_id: str) -> bool:
        if not session_id:
            raise BadRequest("Session ID is required")
        return self.sessions.revoke(session_id)

    # -------------------------------------------------------------------------
    # Password reset
    # -------------------------------------------------------------------------

    async def forgot_password(self, email: str) -> None:
        """Email a six-digit reset code. Unknown addresses get the same answer as known ones."""
        if not email:
            raise BadRequest("Email is required")
        user = self.users.find_by_email(email)
        if not user:
            logger.info(f"Password reset requested for unknown address {mask(email)}")
            return

        otp = f"{secrets.randbelow(10**6):06d}"
        self.resets.issue(user.user_id, generate_password_hash(otp), config.OTP_TTL_MINUTES)
        sent = await self.notifier.send_email(
            user.email,
            "Your password reset code",
            f"Your password reset code is {otp}. It expires in {config.OTP_TTL_MINUTES} minutes.",
            recorded="Password reset code issued",
        )
        if not sent:
            raise UpstreamError("Could not send the reset code")
        logger.info(f"Password reset code sent to {user.user_id}")

    def _check_code(self, email: str, otp: str) -> tuple[User, dict]:
        if not email or not otp:
            raise BadRequest("Email and code are required")
        user = self.users.find_by_email(email)
        reset = self.resets.latest_open(user.user_id) if user else None
        if not reset:
            raise BadRequest(INVALID_CODE)
        if (
            datetime.fromisoformat(reset["expires_at"]) <= datetime.now()
            or reset["attempts"] >= config.OTP_MAX_ATTEMPTS
        ):
            raise BadRequest(INVALID_CODE)
        if not check_password_hash(reset["otp_hash"], otp):
            self.resets.record_failure(reset["reset_id"])
            raise BadRequest(INVALID_CODE)
        return user, reset

    def verify_otp(self, email: str, otp: str) -> User:
        user, reset = self._check_code(email, otp)
        self.resets.mark_verified(reset["reset_id"])
        return user

    def reset_password(
        self,
        email: str,
        otp: str,
        new_password: str,
        ip_address: Optional[str] = None,
        device: Optional[str] = None,
    ) -> User:
        if not new_password:
            raise BadRequest("New password is required")
        user, reset = self._check_code(email, otp)
        if not self.resets.consume(reset["reset_id"]):
            raise BadRequest(INVALID_CODE)

        user = self.users.update(user.user_id, password_hash=generate_password_hash(new_password))
        self.users.record_event(user.user_id, "password-reset", "success", ip_address, device)
        logger.info(f"Password reset for {user.user_id}")
        return user

    # -------------------------------------------------------------------------
    # Google onboarding
    # -------------------------------------------------------------------------

    def google_sign_in(
        self,
        token: str,
        ip_address: Optional[str] = None,
        device: Optional[str] = None,
    ) -> GoogleSignIn:
        if not token:
            raise BadRequest("Token is required")

        identity = self.verifier.verify(token)
        logger.info(f"Google identity verified for {identity.email} ({mask(identity.subject)})")

        user, is_new_user = self._reconcile_google_user(identity)

        if is_new_user:
            profile = ProfileCompletion(False, ["account type"])
        else:
            profile = self._lookup_profile(user)

        session = self.sessions.create(user.user_id, ip_address, device)
        self.users.record_event(
            user.user_id,
            "google-register" if is_new_user else "google-login",
            "success",
            ip_address,
            device,
        )
        logger.info(
            f"Google sign-in for {user.user_id}: new={is_new_user}, "
            f"profile_complete={profile.is_complete}, session {session.session_id}"
        )
        return GoogleSignIn(user, session, is_new_user, profile)

    def _reconcile_google_user(self, identity) -> tuple[User, bool]:
        # First match wins: an existing local account with this email is
        # linked instead of duplicated
        user = self.users.find_by_google_id(identity.subject) or self.users.find_by_email(identity.email)
        if user:
            if not user.google_id:
                user = self.users.link_google(user.user_id, identity.subject)
                logger.info(f"Linked Google account to existing user {user.user_id}")
            return user, False

        first_name, last_name = identity.split_name()
        try:
            user = self.users.create(
                email=identity.email,
                user_type=UserType.PENDING,
                google_id=identity.subject,
                first_name=first_name,
                last_name=last_name,
                profile_image=identity.picture,
            )
        except Conflict:
            # Lost a race with a concurrent sign-in for the same identity
            user = self.users.find_by_google_id(identity.subject) or self.users.find_by_email(identity.email)
            if not user:
                raise
            return user, False
        return user, True

    def _lookup_profile(self, user: User) -> ProfileCompletion:
        try:
            profile = self.profiles.get_by_email(user.email)
        except ProfileServiceUnavailable:
            logger.warning(f"Profile service unavailable, treating {user.user_id} as incomplete")
            return ProfileCompletion(False, ["profile data"], available=False)

        completion = evaluate_profile(user.user_type, profile)
        if completion.is_complete != user.is_profile_complete:
            self.users.update(user.user_id, is_profile_complete=completion.is_complete)
        return completion

    def complete_google_profile(
        self,
        user_id: str,
        user_type: str,
        fields: dict,
        ip_address: Optional[str] = None,
        device: Optional[str] = None,
    ) -> tuple[User, SessionGrant, ProfileCompletion]:
        if not user_id or not user_type:
            raise BadRequest("Missing required fields: userId and userType")
        account_type = parse_user_type(user_type)

        user = self.users.get(user_id)
        if not user:
            raise NotFound("User not found")

        profile = self.profiles.save(user.user_id, user.email, fields)
        completion = evaluate_profile(account_type, profile)
        user = self.users.update(
            user_id,
            user_type=account_type,
            first_name=fields.get("firstName") or user.first_name,
            last_name=fields.get("lastName") or user.last_name,
            is_profile_complete=completion.is_complete,
        )

        session = self.sessions.create(user.user_id, ip_address, device)
        logger.info(f"Profile completed for {user_id} as {account_type.value}")
        return user, session, completion

    def check_profile_completion(self, user_id: str) -> tuple[User, ProfileCompletion]:
        if not user_id:
            raise BadRequest("User ID is required")
        user = self.users.get(user_id)
        if not user:
            raise NotFound("User not found")

        try:
            profile = self.profiles.get(user_id)
        except ProfileServiceUnavailable:
            return user, ProfileCompletion(False, ["profile data"], available=False)
        return user, evaluate_profile(user.user_type, profile)
