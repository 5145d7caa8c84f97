import logging
import uuid
from typing import Any

from fastapi import WebSocket

from core.errors import DeliveryError
from realtime.presence import PresenceRegistry

logger = logging.getLogger(__name__)

NEW_MESSAGE = "new-message"
TYPING = "typing"
USER_STATUS = "user-status"
ERROR = "error"


class FanoutChannel:
    """Best-effort broadcast to every connected websocket.

    Nothing is queued or replayed: a socket that is not connected when
    ``publish`` runs never sees the event.
    """

    def __init__(self, presence: PresenceRegistry | None = None) -> None:
        self.presence = presence if presence is not None else PresenceRegistry()
        self._sockets: dict[str, WebSocket] = {}

    @property
    def connection_count(self) -> int:
        return len(self._sockets)

    async def connect(self, websocket: WebSocket) -> str:
        await websocket.accept()
        connection_id = uuid.uuid4().hex
        self._sockets[connection_id] = websocket
        logger.info("Client connected: %s (%d open)", connection_id, len(self._sockets))
        return connection_id

    async def disconnect(self, connection_id: str) -> None:
        self._sockets.pop(connection_id, None)
        entry = self.presence.leave(connection_id)
        if entry is None:
            return
        logger.info("User %s (%s) disconnected: %s", entry.user_id, entry.user_type, connection_id)
        await self._publish_status()

    async def join(self, connection_id: str, user_type: str, user_id: str) -> None:
        self.presence.join(connection_id, user_type, user_id)
        logger.info("User joined as %s: %s", user_type, connection_id)
        await self._publish_status()

    async def typing(self, connection_id: str, fields: dict[str, Any]) -> bool:
        entry = self.presence.get(connection_id)
        if entry is None:
            return False
        await self.publish(TYPING, {**fields, "userId": entry.user_id}, exclude=connection_id)
        return True

    async def relay(self, message: dict[str, Any]) -> int:
        """Broadcast a client-supplied message without storing it."""
        return await self.publish(NEW_MESSAGE, message)

    async def send(self, connection_id: str, event: str, payload: dict[str, Any]) -> bool:
        websocket = self._sockets.get(connection_id)
        if websocket is None:
            return False
        try:
            await self._deliver(connection_id, websocket, event, payload)
        except DeliveryError as e:
            logger.warning("%s: %s", e, e.__cause__)
            return False
        return True

    async def publish(
        self,
        event: str,
        payload: Any,
        exclude: str | None = None,
    ) -> int:
        delivered = 0
        # Snapshot: sockets may disconnect while we await sends
        for connection_id, websocket in list(self._sockets.items()):
            if connection_id == exclude:
                continue
            try:
                await self._deliver(connection_id, websocket, event, payload)
            except DeliveryError as e:
                logger.warning("%s: %s", e, e.__cause__)
                continue
            delivered += 1
        return delivered

    async def _publish_status(self) -> None:
        await self.publish(USER_STATUS, [e.to_wire() for e in self.presence.entries()])

    @staticmethod
    async def _deliver(connection_id: str, websocket: WebSocket, event: str, payload: Any) -> None:
        try:
            await websocket.send_json({"event": event, "data": payload})
        except Exception as e:
            raise DeliveryError(connection_id, event) from e
