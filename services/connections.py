import logging
from typing import Any, Optional, Protocol

logger = logging.getLogger(__name__)


class PushSocket(Protocol):
    async def send_json(self, data: Any) -> None: ...


class ConnectionManager:
    """
    Live WebSocket connections keyed by user id.

    A user has at most one registered socket; registering again replaces
    the previous one.
    """

    def __init__(self):
        self._by_user: dict[str, PushSocket] = {}

    def register(self, user_id: str, socket: PushSocket):
        previous = self._by_user.get(user_id)
        self._by_user[user_id] = socket
        if previous is not None and previous is not socket:
            logger.info(f"User {user_id} re-registered, replacing previous socket")
        else:
            logger.info(f"User {user_id} registered")

    def deregister(self, socket: PushSocket) -> Optional[str]:
        for user_id, registered in list(self._by_user.items()):
            if registered is socket:
                del self._by_user[user_id]
                logger.info(f"User {user_id} disconnected")
                return user_id
        return None

    def is_connected(self, user_id: str) -> bool:
        return user_id in self._by_user

    @property
    def connected_users(self) -> list[str]:
        return list(self._by_user)

    async def send(self, user_id: str, payload: dict) -> bool:
        socket = self._by_user.get(user_id)
        if socket is None:
            return False
        try:
            await socket.send_json(payload)
        except Exception as e:
            # Dead socket: drop it so the next send can fall back
            logger.warning(f"Push to {user_id} failed: {e}")
            self.deregister(socket)
            return False
        return True
