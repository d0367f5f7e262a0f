from pydantic import BaseModel
from datetime import datetime
from typing import Optional
from enum import Enum


class UserType(str, Enum):
    CUSTOMER = "CUSTOMER"
    RESTAURANT = "RESTAURANT"
    DRIVER = "DRIVER"
    PENDING = "PENDING"  # placeholder until the account type is chosen


class AuthProvider(str, Enum):
    LOCAL = "local"
    GOOGLE = "google"


class DeliveryStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    IN_PROGRESS = "IN_PROGRESS"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PREPARING = "PREPARING"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class ApplicationStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class User(BaseModel):
    user_id: str
    email: str
    password_hash: Optional[str] = None
    user_type: UserType
    google_id: Optional[str] = None
    is_google_user: bool = False
    auth_provider: AuthProvider = AuthProvider.LOCAL
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image: Optional[str] = None
    is_profile_complete: bool = False
    created_at: datetime
    updated_at: datetime


class Session(BaseModel):
    session_id: str
    token: str
    user_id: str
    ip_address: Optional[str] = None
    device: Optional[str] = None
    created_at: datetime
    revoked_at: Optional[datetime] = None


class Delivery(BaseModel):
    delivery_id: str
    order_id: str
    status: DeliveryStatus
    driver_id: Optional[str] = None
    created_at: datetime
    accepted_at: Optional[datetime] = None
    picked_up_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    updated_at: datetime


class Order(BaseModel):
    order_id: str
    customer_id: str
    restaurant_id: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    status: OrderStatus
    total: float
    delivery_fee: float = 0.0
    created_at: datetime
    updated_at: datetime


class DriverApplication(BaseModel):
    user_id: str
    email: str
    phone: Optional[str] = None
    vehicle_type: str
    vehicle_number: str
    license_number: str
    status: ApplicationStatus
    created_at: datetime
    reviewed_at: Optional[datetime] = None
