"""In-process hub for real-time notification delivery over WebSockets.

Connections are keyed by user id. Delivery is best-effort: a dead socket is
dropped and the caller never sees the failure.
"""

import logging
from collections import defaultdict

from fastapi import WebSocket

logger = logging.getLogger("coachshare.realtime")


class NotificationHub:
    def __init__(self) -> None:
        self._connections: dict[str, set[WebSocket]] = defaultdict(set)

    def connect(self, user_id: str, websocket: WebSocket) -> None:
        self._connections[str(user_id)].add(websocket)

    def disconnect(self, user_id: str, websocket: WebSocket) -> None:
        sockets = self._connections.get(str(user_id))
        if not sockets:
            return
        sockets.discard(websocket)
        if not sockets:
            del self._connections[str(user_id)]

    def connection_count(self, user_id: str) -> int:
        return len(self._connections.get(str(user_id), ()))

    async def send(self, user_id: str, payload: dict) -> int:
        """Push a payload to every socket of a user. Returns deliveries made."""
        delivered = 0
        for websocket in list(self._connections.get(str(user_id), ())):
            try:
                await websocket.send_json(payload)
                delivered += 1
            except Exception:
                logger.warning("dropping dead websocket for user %s", user_id, exc_info=True)
                self.disconnect(user_id, websocket)
        return delivered


# Module-level singleton, replaced in tests via set_hub
_hub: NotificationHub | None = None


def get_hub() -> NotificationHub:
    global _hub
    if _hub is None:
        _hub = NotificationHub()
    return _hub


def set_hub(hub: NotificationHub | None) -> None:
    global _hub
    _hub = hub
