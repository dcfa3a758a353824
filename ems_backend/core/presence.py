import logging
from typing import Any, Dict, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class PresenceHub:
    """Tracks connected websocket clients and fans out broadcasts."""

    def __init__(self):
        self._connections: Set[WebSocket] = set()

    @property
    def connected(self) -> int:
        return len(self._connections)

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self._connections.add(websocket)
        logger.info("Client connected (%d online)", self.connected)

    async def disconnect(self, websocket: WebSocket) -> None:
        self._connections.discard(websocket)
        logger.info("Client disconnected (%d online)", self.connected)

    async def broadcast(self, message: Dict[str, Any]) -> int:
        """Send to every client; clients that fail are dropped. Returns deliveries."""
        targets = list(self._connections)
        delivered = 0
        for ws in targets:
            try:
                await ws.send_json(message)
                delivered += 1
            except Exception:
                logger.warning("Dropping unreachable presence client", exc_info=True)
                await self.disconnect(ws)
        return delivered


hub = PresenceHub()
