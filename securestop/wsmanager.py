import logging
from typing import Callable, Dict, Optional
from fastapi import WebSocket
from .schemas import AlertMessage, NotificationPrefs, Role
from .visibility import is_visible

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Connected viewers, each with a role and optionally its own prefs.

    A connection without its own prefs follows `prefs_provider`, so changes
    made through the prefs endpoint apply to it immediately.
    """

    def __init__(self, prefs_provider: Optional[Callable[[], NotificationPrefs]] = None):
        self.active_connections: Dict[WebSocket, Role] = {}
        self.connection_prefs: Dict[WebSocket, NotificationPrefs] = {}
        self.prefs_provider = prefs_provider

    async def connect(self, websocket: WebSocket, role: Role, prefs: Optional[NotificationPrefs] = None):
        await websocket.accept()
        self.active_connections[websocket] = Role(role)
        if prefs is not None:
            self.connection_prefs[websocket] = prefs
        logger.info("=== WebSocket connected as %s. Total connections: %d ===", Role(role).value, len(self.active_connections))

    def disconnect(self, websocket: WebSocket):
        self.connection_prefs.pop(websocket, None)
        if websocket in self.active_connections:
            del self.active_connections[websocket]
            logger.info("=== WebSocket disconnected. Total connections: %d ===", len(self.active_connections))

    def prefs_for(self, websocket: WebSocket) -> NotificationPrefs:
        prefs = self.connection_prefs.get(websocket)
        if prefs is not None:
            return prefs
        if self.prefs_provider is not None:
            return self.prefs_provider()
        return NotificationPrefs()

    async def broadcast(self, message: dict):
        """Broadcast message to all connected WebSocket clients."""
        if not self.active_connections:
            logger.debug("No active WebSocket connections to broadcast to")
            return

        for connection in list(self.active_connections):
            await self.send_personal_message(message, connection)

    async def broadcast_alert(self, msg: AlertMessage):
        """Send an alert only to the viewers allowed to see it."""
        await self._send_visible(msg, {"type": "alert", "payload": msg.model_dump(mode="json")})

    async def schedule_local_notification(self, msg: AlertMessage):
        """Local notification sink; same audience as broadcast_alert."""
        await self._send_visible(msg, {
            "type": "notification",
            "payload": {"alert_id": msg.id, "title": msg.title, "body": msg.body},
        })

    async def _send_visible(self, msg: AlertMessage, message: dict):
        for connection, role in list(self.active_connections.items()):
            if is_visible(msg, role, self.prefs_for(connection)):
                await self.send_personal_message(message, connection)

    async def send_personal_message(self, message: dict, websocket: WebSocket):
        """Send message to a specific WebSocket client."""
        try:
            await websocket.send_json(message)
        except Exception as e:
            logger.warning("WebSocket send error: %s", e)
            self.disconnect(websocket)
