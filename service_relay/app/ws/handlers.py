"""
WebSocket message handlers for the Realtime Relay.
"""

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from shared.logging import get_logger
from ..rooms.manager import RoomManager, frame


@dataclass
class ClientMessage:
    """Client frame wrapper."""
    event: str
    data: Any
    connection_id: str


def disaster_room(disaster_id: Any) -> str:
    return f"disaster_{disaster_id}"


def error_frame(code: str, message: str) -> Dict[str, Any]:
    return frame("error", {"code": code, "message": message})


class RelayMessageHandler:
    """Parses client frames and applies them to the room manager."""

    def __init__(self, rooms: RoomManager):
        self.rooms = rooms
        self.logger = get_logger("relay.ws.handler")

    async def handle_message(self, connection_id: str, message_text: str) -> Optional[Dict[str, Any]]:
        """Handle one text frame; returns the reply frame, if any."""
        try:
            payload = json.loads(message_text)
        except json.JSONDecodeError as e:
            self.logger.warning("Invalid JSON frame", connection_id=connection_id, error=str(e))
            return error_frame("INVALID_JSON", "Message must be valid JSON")

        if not isinstance(payload, dict):
            return error_frame("INVALID_FORMAT", "Message must be a JSON object")

        event = payload.get("event")
        if not isinstance(event, str) or not event:
            return error_frame("INVALID_FORMAT", "Message must have an 'event' field")

        message = ClientMessage(event=event, data=payload.get("data"), connection_id=connection_id)
        return await self._route_message(message)

    async def _route_message(self, message: ClientMessage) -> Optional[Dict[str, Any]]:
        handlers = {
            "join_disaster": self._handle_join_disaster,
            "leave_disaster": self._handle_leave_disaster,
            "join_room": self._handle_join_room,
            "leave_room": self._handle_leave_room,
            "ping": self._handle_ping
        }

        handler = handlers.get(message.event)
        if not handler:
            return error_frame("UNKNOWN_EVENT", f"Unknown event: {message.event}")

        return await handler(message)

    async def _handle_join_disaster(self, message: ClientMessage) -> Dict[str, Any]:
        disaster_id = self._disaster_id(message.data)
        if disaster_id is None:
            return error_frame("MISSING_DISASTER_ID", "A disaster id is required")
        return await self._join(message.connection_id, disaster_room(disaster_id))

    async def _handle_leave_disaster(self, message: ClientMessage) -> Dict[str, Any]:
        disaster_id = self._disaster_id(message.data)
        if disaster_id is None:
            return error_frame("MISSING_DISASTER_ID", "A disaster id is required")
        return await self._leave(message.connection_id, disaster_room(disaster_id))

    async def _handle_join_room(self, message: ClientMessage) -> Dict[str, Any]:
        room = self._room_name(message.data)
        if room is None:
            return error_frame("MISSING_ROOM", "A room name is required")
        return await self._join(message.connection_id, room)

    async def _handle_leave_room(self, message: ClientMessage) -> Dict[str, Any]:
        room = self._room_name(message.data)
        if room is None:
            return error_frame("MISSING_ROOM", "A room name is required")
        return await self._leave(message.connection_id, room)

    async def _handle_ping(self, message: ClientMessage) -> Dict[str, Any]:
        return frame("pong", {"timestamp": datetime.now(timezone.utc).isoformat()})

    async def _join(self, connection_id: str, room: str) -> Dict[str, Any]:
        if not await self.rooms.join(connection_id, room):
            return error_frame("CONNECTION_NOT_FOUND", "Connection not found")
        return frame("joined", {"room": room})

    async def _leave(self, connection_id: str, room: str) -> Dict[str, Any]:
        if not await self.rooms.leave(connection_id, room):
            return error_frame("CONNECTION_NOT_FOUND", "Connection not found")
        return frame("left", {"room": room})

    @staticmethod
    def _disaster_id(data: Any) -> Optional[str]:
        if isinstance(data, dict):
            data = data.get("disaster_id")
        if isinstance(data, bool) or data is None:
            return None
        if isinstance(data, (int, str)) and str(data).strip():
            return str(data).strip()
        return None

    @staticmethod
    def _room_name(data: Any) -> Optional[str]:
        if isinstance(data, dict):
            data = data.get("room")
        if isinstance(data, str) and data.strip():
            return data.strip()
        return None
