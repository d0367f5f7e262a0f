from .users import UserGenerator, DemoAccount, DEMO_PASSWORD
from .deliveries import DeliveryGenerator, OrderWithDelivery

__all__ = [
    "UserGenerator",
    "DemoAccount",
    "DEMO_PASSWORD",
    "DeliveryGenerator",
    "OrderWithDelivery",
]
