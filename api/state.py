import config
from services import (
    AuthService,
    ConnectionManager,
    DeliveryService,
    DriverService,
    GoogleTokenVerifier,
    HttpProfileStore,
    LocalSessionIssuer,
    Notifier,
    OrderService,
    SessionClient,
    SqliteProfileStore,
)
from services.notifications import default_email_sender, default_sms_sender


class AppState:
    """
    Collaborators shared by the routers.

    Everything is built lazily on first use; tests swap pieces with
    override() before the first request.
    """

    def __init__(self):
        self.reset()

    def reset(self):
        self._token_verifier = None
        self._session_issuer = None
        self._profile_store = None
        self._email_sender = None
        self._sms_sender = None
        self._connections = None
        self._notifier = None
        self._auth_service = None
        self._delivery_service = None
        self._order_service = None
        self._driver_service = None

    def override(self, **collaborators):
        for name, value in collaborators.items():
            attr = f"_{name}"
            if not hasattr(self, attr):
                raise AttributeError(f"Unknown collaborator: {name}")
            setattr(self, attr, value)

    @property
    def token_verifier(self):
        if self._token_verifier is None:
            self._token_verifier = GoogleTokenVerifier()
        return self._token_verifier

    @property
    def session_issuer(self):
        if self._session_issuer is None:
            if config.SESSION_SERVICE_URL:
                self._session_issuer = SessionClient(config.SESSION_SERVICE_URL)
            else:
                self._session_issuer = LocalSessionIssuer()
        return self._session_issuer

    @property
    def profile_store(self):
        if self._profile_store is None:
            if config.USER_SERVICE_URL:
                self._profile_store = HttpProfileStore(config.USER_SERVICE_URL)
            else:
                self._profile_store = SqliteProfileStore()
        return self._profile_store

    @property
    def email_sender(self):
        if self._email_sender is None:
            self._email_sender = default_email_sender()
        return self._email_sender

    @property
    def sms_sender(self):
        if self._sms_sender is None:
            self._sms_sender = default_sms_sender()
        return self._sms_sender

    @property
    def connections(self) -> ConnectionManager:
        if self._connections is None:
            self._connections = ConnectionManager()
        return self._connections

    @property
    def notifier(self) -> Notifier:
        if self._notifier is None:
            self._notifier = Notifier(self.email_sender, self.sms_sender, self.connections)
        return self._notifier

    @property
    def auth_service(self) -> AuthService:
        if self._auth_service is None:
            self._auth_service = AuthService(
                verifier=self.token_verifier,
                sessions=self.session_issuer,
                profiles=self.profile_store,
                notifier=self.notifier,
            )
        return self._auth_service

    @property
    def delivery_service(self) -> DeliveryService:
        if self._delivery_service is None:
            self._delivery_service = DeliveryService()
        return self._delivery_service

    @property
    def order_service(self) -> OrderService:
        if self._order_service is None:
            self._order_service = OrderService(self.delivery_service, self.notifier)
        return self._order_service

    @property
    def driver_service(self) -> DriverService:
        if self._driver_service is None:
            self._driver_service = DriverService(self.delivery_service, self.notifier)
        return self._driver_service


state = AppState()
