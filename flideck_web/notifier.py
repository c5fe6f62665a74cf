"""
WebSocket change broadcaster.

Every committed manifest mutation ends up here and is pushed to connected
browsers as a ``presentations:updated`` event.
"""

import logging
from typing import List, Optional

from fastapi import WebSocket

from flideck_core.ports import LoggingNotifier

logger = logging.getLogger(__name__)

EVENT_NAME = "presentations:updated"


class WebSocketNotifier(LoggingNotifier):
    """Broadcasts change events to every registered WebSocket."""

    def __init__(self, history_size: int = 100):
        super().__init__(history_size=history_size)
        self.connections: List[WebSocket] = []

    def register(self, websocket: WebSocket) -> None:
        self.connections.append(websocket)
        logger.debug(f"WebSocket client connected ({len(self.connections)} total)")

    def unregister(self, websocket: WebSocket) -> None:
        if websocket in self.connections:
            self.connections.remove(websocket)
            logger.debug(f"WebSocket client disconnected ({len(self.connections)} total)")

    async def notify(self, presentation_id: Optional[str], reason: str) -> None:
        await super().notify(presentation_id, reason)
        message = {
            "event": EVENT_NAME,
            "data": {"reason": reason, "presentationId": presentation_id},
        }
        for websocket in list(self.connections):
            try:
                await websocket.send_json(message)
            except Exception as e:
                logger.debug(f"Dropping dead WebSocket client: {e}")
                self.unregister(websocket)
