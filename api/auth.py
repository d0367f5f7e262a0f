from typing import Optional

from fastapi import APIRouter, Request

from api.models import (
    CompleteProfileRequest,
    CompleteProfileResponse,
    ForgotPasswordRequest,
    GoogleAuthResponse,
    GoogleTokenRequest,
    LogoutRequest,
    ProfileCompletionResponse,
    ResetPasswordRequest,
    SessionResponse,
    SignInRequest,
    SignUpRequest,
    SignUpResponse,
    VerifyOtpRequest,
)
from api.state import state

router = APIRouter(prefix="/auth", tags=["Auth"])


def client_ip(request: Request, provided: Optional[str] = None) -> str:
    if provided:
        return provided
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "0.0.0.0"


def client_device(request: Request, provided: Optional[str] = None) -> str:
    return provided or request.headers.get("user-agent") or "unknown"


@router.get("/health")
def health():
    return {"status": "ok", "service": "auth-service"}


@router.get("/client-ip")
def get_client_ip(request: Request):
    return {"ip": client_ip(request)}


@router.post("/sign-up", response_model=SignUpResponse, status_code=201)
def sign_up(payload: SignUpRequest):
    """Register a local email/password account."""
    user = state.auth_service.sign_up(
        email=payload.email,
        password=payload.password,
        user_type=payload.user_type,
        profile_fields={
            "firstName": payload.first_name,
            "lastName": payload.last_name,
            "contactNumber": payload.contact_number,
        },
    )
    return SignUpResponse(
        message="User registered successfully",
        user_id=user.user_id,
        user_type=user.user_type.value,
        email=user.email,
    )


@router.post("/sign-in", response_model=SessionResponse)
def sign_in(payload: SignInRequest, request: Request):
    user, session = state.auth_service.sign_in(
        email=payload.email,
        password=payload.password,
        ip_address=client_ip(request, payload.ip_address),
        device=client_device(request, payload.device),
    )
    return SessionResponse(
        message="Signed in successfully",
        user_id=user.user_id,
        session_id=session.session_id,
        token=session.token,
        user_type=user.user_type.value,
        email=user.email,
    )


@router.post("/logout")
def logout(payload: LogoutRequest):
    revoked = state.auth_service.logout(payload.session_id)
    return {"message": "Logged out" if revoked else "Session already closed"}


@router.post("/forgot-password")
async def forgot_password(payload: ForgotPasswordRequest):
    """Email a one-time reset code; the reply is the same for unknown addresses."""
    await state.auth_service.forgot_password(payload.email)
    return {"message": "If the address is registered, a reset code has been sent"}


@router.post("/verify-otp")
def verify_otp(payload: VerifyOtpRequest):
    user = state.auth_service.verify_otp(payload.email, payload.otp)
    return {"message": "Code verified", "email": user.email}


@router.post("/reset-password")
def reset_password(payload: ResetPasswordRequest, request: Request):
    state.auth_service.reset_password(
        email=payload.email,
        otp=payload.otp,
        new_password=payload.new_password,
        ip_address=client_ip(request, payload.ip_address),
        device=client_device(request, payload.device),
    )
    return {"message": "Password has been reset"}


@router.post("/google/token", response_model=GoogleAuthResponse)
@router.post("/google/signin", response_model=GoogleAuthResponse)
def google_token_auth(payload: GoogleTokenRequest, request: Request):
    """
    Sign in (or sign up) with a Google access token or ID token.

    New accounts get the PENDING user type and must finish onboarding
    through /auth/google/complete-profile.
    """
    result = state.auth_service.google_sign_in(
        token=payload.token,
        ip_address=client_ip(request, payload.ip_address),
        device=client_device(request, payload.device),
    )
    user = result.user
    return GoogleAuthResponse(
        message="Google account connected successfully" if result.is_new_user else "Signed in with Google",
        user_id=user.user_id,
        session_id=result.session.session_id,
        token=result.session.token,
        user_type=user.user_type.value,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        profile_picture=user.profile_image,
        profile_incomplete=not result.profile.is_complete,
        profile_status=result.profile_status,
        is_new_user=result.is_new_user,
    )


@router.post("/google/complete-profile", response_model=CompleteProfileResponse)
def complete_google_profile(payload: CompleteProfileRequest, request: Request):
    user, session, completion = state.auth_service.complete_google_profile(
        user_id=payload.user_id,
        user_type=payload.user_type,
        fields=payload.model_extra or {},
        ip_address=client_ip(request, payload.ip_address),
        device=client_device(request, payload.device),
    )
    return CompleteProfileResponse(
        user_id=user.user_id,
        user_type=user.user_type.value,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        profile_picture=user.profile_image,
        token=session.token,
        session_id=session.session_id,
        profile_incomplete=not completion.is_complete,
        missing_fields=completion.missing_fields,
    )


@router.get("/profile-completion/{user_id}", response_model=ProfileCompletionResponse)
def check_profile_completion(user_id: str):
    user, completion = state.auth_service.check_profile_completion(user_id)
    return ProfileCompletionResponse(
        is_complete=completion.is_complete,
        user_type=user.user_type.value,
        email=user.email,
        missing_fields=completion.missing_fields,
    )
