from .main import app
from .models import (
    GoogleAuthResponse,
    SessionResponse,
    DeliveryResponse,
    OrderResponse,
    StatsResponse,
)
from .state import state, AppState

__all__ = [
    "app",
    "GoogleAuthResponse",
    "SessionResponse",
    "DeliveryResponse",
    "OrderResponse",
    "StatsResponse",
    "state",
    "AppState",
]
