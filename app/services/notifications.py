# app/services/notifications.py
"""Real-time fan-out of booking events to the other party.

Delivery is best effort and at most once: a failed publish is logged and
dropped, it never fails the booking mutation that triggered it.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Any, Dict, Optional, Protocol, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class NotificationChannel(Protocol):
    def publish(self, user_id: int, event: str, payload: Dict[str, Any]) -> None:
        ...


class NotificationManager:
    """Per-user WebSocket connections, fed from sync or async code."""

    def __init__(self) -> None:
        self._connections: Dict[int, Set[WebSocket]] = defaultdict(set)
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    async def connect(self, user_id: int, websocket: WebSocket) -> None:
        await websocket.accept()
        self._loop = asyncio.get_running_loop()
        self._connections[user_id].add(websocket)
        logger.info("User %s connected to notifications", user_id)

    def disconnect(self, user_id: int, websocket: WebSocket) -> None:
        sockets = self._connections.get(user_id)
        if not sockets:
            return
        sockets.discard(websocket)
        if not sockets:
            self._connections.pop(user_id, None)

    def connection_count(self, user_id: int) -> int:
        return len(self._connections.get(user_id, ()))

    async def send(self, user_id: int, message: Dict[str, Any]) -> None:
        for websocket in list(self._connections.get(user_id, ())):
            try:
                await websocket.send_json(message)
            except Exception:
                logger.warning("Dropping dead notification socket for user %s", user_id)
                self.disconnect(user_id, websocket)

    def publish(self, user_id: int, event: str, payload: Dict[str, Any]) -> None:
        if not self._connections.get(user_id) or self._loop is None:
            return
        if self._loop.is_closed():
            logger.warning("Notification loop closed, dropping %s for user %s", event, user_id)
            self._loop = None
            return
        message = {"event": event, "payload": payload}
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            self._loop.create_task(self.send(user_id, message))
        else:
            # Request handlers run in the threadpool; hand off to the server loop.
            asyncio.run_coroutine_threadsafe(self.send(user_id, message), self._loop)


class NotificationFanout:
    """Wraps a channel so publish errors never reach the caller."""

    def __init__(self, channel: NotificationChannel):
        self.channel = channel

    def notify(self, user_id: int, event: str, payload: Dict[str, Any]) -> bool:
        try:
            self.channel.publish(user_id, event, payload)
        except Exception:
            logger.exception("Failed to publish %s to user %s", event, user_id)
            return False
        return True


notifications_manager = NotificationManager()


def get_notification_channel() -> NotificationChannel:
    return notifications_manager
