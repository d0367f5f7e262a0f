from .schemas import (
    User,
    Session,
    Delivery,
    Order,
    DriverApplication,
    UserType,
    AuthProvider,
    DeliveryStatus,
    OrderStatus,
    ApplicationStatus,
)

__all__ = [
    "User",
    "Session",
    "Delivery",
    "Order",
    "DriverApplication",
    "UserType",
    "AuthProvider",
    "DeliveryStatus",
    "OrderStatus",
    "ApplicationStatus",
]
