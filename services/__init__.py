from .auth import AuthService, GoogleSignIn
from .connections import ConnectionManager
from .deliveries import DeliveryService, IllegalTransitionError, DeliveryConflictError
from .drivers import DriverService
from .errors import ServiceError
from .notifications import Notifier
from .orders import OrderService
from .profiles import HttpProfileStore, SqliteProfileStore
from .sessions import SessionClient, LocalSessionIssuer
from .tokens import GoogleTokenVerifier, GoogleIdentity, TokenVerificationError

__all__ = [
    "AuthService",
    "GoogleSignIn",
    "ConnectionManager",
    "DeliveryService",
    "IllegalTransitionError",
    "DeliveryConflictError",
    "DriverService",
    "ServiceError",
    "Notifier",
    "OrderService",
    "HttpProfileStore",
    "SqliteProfileStore",
    "SessionClient",
    "LocalSessionIssuer",
    "GoogleTokenVerifier",
    "GoogleIdentity",
    "TokenVerificationError",
]
