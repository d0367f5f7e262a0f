from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """JSON uses camelCase keys, matching the web client."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Auth
# =============================================================================

class SignUpRequest(CamelModel):
    email: EmailStr
    password: str
    user_type: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    contact_number: Optional[str] = None


class SignUpResponse(CamelModel):
    message: str
    user_id: str
    user_type: str
    email: str


class SignInRequest(CamelModel):
    email: EmailStr
    password: str
    device: Optional[str] = None
    ip_address: Optional[str] = None


class SessionResponse(CamelModel):
    message: str
    user_id: str
    session_id: str
    token: str
    user_type: str
    email: str


class GoogleTokenRequest(CamelModel):
    token: Optional[str] = None
    device: Optional[str] = None
    ip_address: Optional[str] = None


class GoogleAuthResponse(CamelModel):
    message: str
    user_id: str
    session_id: str
    token: str
    user_type: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_picture: Optional[str] = None
    profile_incomplete: bool
    profile_status: str
    is_new_user: bool


class CompleteProfileRequest(CamelModel):
    """Role-specific fields (vehicleNumber, restaurantName, ...) pass through as extras."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    user_id: Optional[str] = None
    user_type: Optional[str] = None
    device: Optional[str] = None
    ip_address: Optional[str] = None


class CompleteProfileResponse(CamelModel):
    user_id: str
    user_type: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_picture: Optional[str] = None
    token: str
    session_id: str
    profile_incomplete: bool
    missing_fields: list[str] = []


class ProfileCompletionResponse(CamelModel):
    is_complete: bool
    user_type: str
    email: str
    missing_fields: list[str]


class LogoutRequest(CamelModel):
    session_id: Optional[str] = None


class ForgotPasswordRequest(CamelModel):
    email: EmailStr


class VerifyOtpRequest(CamelModel):
    email: EmailStr
    otp: str


class ResetPasswordRequest(CamelModel):
    email: EmailStr
    otp: str
    new_password: str
    device: Optional[str] = None
    ip_address: Optional[str] = None


# =============================================================================
# Deliveries
# =============================================================================

class CreateDeliveryRequest(CamelModel):
    order_id: str


class UpdateDeliveryRequest(CamelModel):
    status: str
    driver_id: Optional[str] = None


class AcceptDeliveryRequest(CamelModel):
    driver_id: str


class DeliveryResponse(CamelModel):
    delivery_id: str
    order_id: str
    status: str
    driver_id: Optional[str] = None
    created_at: datetime
    accepted_at: Optional[datetime] = None
    picked_up_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    updated_at: datetime


# =============================================================================
# Orders & drivers
# =============================================================================

class CreateOrderRequest(CamelModel):
    customer_id: str
    restaurant_id: str
    total: float
    delivery_fee: float = 0.0
    customer_email: Optional[EmailStr] = None
    customer_phone: Optional[str] = None


class UpdateOrderStatusRequest(CamelModel):
    status: str


class OrderResponse(CamelModel):
    order_id: str
    customer_id: str
    restaurant_id: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    status: str
    total: float
    delivery_fee: float
    created_at: datetime
    updated_at: datetime
    delivery_id: Optional[str] = None


class AllocateDeliveryRequest(CamelModel):
    delivery_id: str
    driver_id: str


class DriverApplicationRequest(CamelModel):
    user_id: str
    email: EmailStr
    phone: Optional[str] = None
    vehicle_type: str
    vehicle_number: str
    license_number: str


class ApplicationStatusRequest(CamelModel):
    status: str


class DriverApplicationResponse(CamelModel):
    user_id: str
    email: str
    phone: Optional[str] = None
    vehicle_type: str
    vehicle_number: str
    license_number: str
    status: str
    created_at: datetime
    reviewed_at: Optional[datetime] = None


class BroadcastRecipient(CamelModel):
    email: EmailStr
    variables: dict = {}


class BroadcastRequest(CamelModel):
    recipients: list[BroadcastRecipient]
    subject: str
    template: str
    variables: dict = {}


class BroadcastResponse(CamelModel):
    sent: int
    failed: int
    failed_recipients: list[str]


class StatsResponse(BaseModel):
    users: int
    sessions: int
    profiles: int
    auth_events: int
    orders: int
    deliveries: int
    driver_applications: int
    notifications: int
    password_resets: int
    connected_users: int
