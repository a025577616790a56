from __future__ import annotations

import asyncio
import logging

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class NotificationHub:
    """Open notification websockets keyed by recipient user id.

    Sync request handlers never talk to the hub directly. They stage events
    on their database session and the committed batch arrives here through
    ``send_many``.
    """

    def __init__(self) -> None:
        self._sockets: dict[str, list[WebSocket]] = {}
        self._lock = asyncio.Lock()

    async def register(self, user_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._sockets.setdefault(user_id, []).append(websocket)

    async def unregister(self, user_id: str, websocket: WebSocket) -> None:
        async with self._lock:
            remaining = [socket for socket in self._sockets.get(user_id, []) if socket is not websocket]
            if remaining:
                self._sockets[user_id] = remaining
            else:
                self._sockets.pop(user_id, None)

    async def send_many(self, events: list[tuple[str, dict]]) -> int:
        """Deliver ``(user_id, payload)`` pairs in order; returns frames sent."""
        sent = 0
        for user_id, payload in events:
            async with self._lock:
                sockets = list(self._sockets.get(user_id, []))
            if not sockets:
                continue
            results = await asyncio.gather(
                *(socket.send_json(payload) for socket in sockets),
                return_exceptions=True,
            )
            for socket, result in zip(sockets, results):
                if isinstance(result, Exception):
                    logger.debug("Dropping closed websocket for user %s: %s", user_id, result)
                    await self.unregister(user_id, socket)
                else:
                    sent += 1
        return sent


notification_hub = NotificationHub()
