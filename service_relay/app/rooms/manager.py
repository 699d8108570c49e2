"""
Room membership and fan-out for the Realtime Relay.
"""

import asyncio
import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set, TYPE_CHECKING

from shared.errors import RelayUnavailable
from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


ONLINE_USERS = "online_users"


@dataclass
class RelayConnection:
    """A connected realtime client."""
    connection_id: str
    websocket: Any  # WebSocket object
    rooms: Set[str] = field(default_factory=set)
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def frame(event: str, data: Any = None) -> Dict[str, Any]:
    return {"event": event, "data": data}


class RoomManager:
    """Tracks connections and the rooms they belong to.

    Membership changes and the member snapshot taken for each multicast are
    serialized by one lock. Sends happen outside the lock; a member whose send
    fails is dropped as if it had disconnected, and the new online count is
    pushed to the remaining connections.
    """

    def __init__(self, max_connections: int = 5000, metrics: Optional["MetricsCollector"] = None):
        self.max_connections = max_connections
        self.metrics = metrics
        self.logger = get_logger("relay.rooms.manager")

        self.connections: Dict[str, RelayConnection] = {}
        self.rooms: Dict[str, Set[str]] = {}  # room -> connection_ids
        self._lock = asyncio.Lock()

    @property
    def online_count(self) -> int:
        return len(self.connections)

    async def connect(self, websocket: Any) -> str:
        """Register a connection and push the new online count to everyone."""
        async with self._lock:
            if len(self.connections) >= self.max_connections:
                raise RelayUnavailable(
                    f"Maximum connections ({self.max_connections}) exceeded",
                    {"max_connections": self.max_connections}
                )

            connection_id = str(uuid.uuid4())
            self.connections[connection_id] = RelayConnection(connection_id=connection_id, websocket=websocket)
            self._update_gauges()

        self.logger.info("Client connected", connection_id=connection_id, online=self.online_count)
        await self.announce_online_users()
        return connection_id

    async def disconnect(self, connection_id: str):
        """Remove a connection from every room and push the new online count."""
        async with self._lock:
            removed = self._forget(connection_id)

        if removed:
            self.logger.info("Client disconnected", connection_id=connection_id, online=self.online_count)
            await self.announce_online_users()

    async def join(self, connection_id: str, room: str) -> bool:
        async with self._lock:
            connection = self.connections.get(connection_id)
            if not connection:
                return False

            connection.rooms.add(room)
            self.rooms.setdefault(room, set()).add(connection_id)
            self._update_gauges()
            members = len(self.rooms[room])

        self.logger.info("Joined room", connection_id=connection_id, room=room, members=members)
        return True

    async def leave(self, connection_id: str, room: str) -> bool:
        async with self._lock:
            connection = self.connections.get(connection_id)
            if not connection:
                return False

            connection.rooms.discard(room)
            self._discard_member(room, connection_id)
            self._update_gauges()

        self.logger.info("Left room", connection_id=connection_id, room=room)
        return True

    async def broadcast_to_room(self, room: str, message: Dict[str, Any]) -> int:
        """Deliver ``message`` to every current member of ``room``.

        Returns the number of successful deliveries.
        """
        async with self._lock:
            targets = self._snapshot(self.rooms.get(room, set()))

        delivered = await self._deliver(targets, message)
        self.logger.debug("Broadcast to room", room=room, delivered=delivered, members=len(targets))
        return delivered

    async def broadcast_all(self, message: Dict[str, Any]) -> int:
        async with self._lock:
            targets = self._snapshot(self.connections.keys())

        return await self._deliver(targets, message)

    async def announce_online_users(self) -> int:
        return await self.broadcast_all(frame(ONLINE_USERS, self.online_count))

    async def send(self, connection_id: str, message: Dict[str, Any]) -> bool:
        connection = self.connections.get(connection_id)
        if not connection:
            return False
        return await self._deliver([connection], message) == 1

    async def close_all(self):
        async with self._lock:
            connections = list(self.connections.values())
            self.connections.clear()
            self.rooms.clear()
            self._update_gauges()

        for connection in connections:
            try:
                await connection.websocket.close()
            except Exception as e:
                self.logger.debug("Error closing connection", connection_id=connection.connection_id, error=str(e))

    def members(self, room: str) -> Set[str]:
        return self.rooms.get(room, set()).copy()

    def get_stats(self) -> Dict[str, Any]:
        return {
            "online_users": self.online_count,
            "max_connections": self.max_connections,
            "rooms": {room: len(members) for room, members in self.rooms.items()},
            "connections": [
                {
                    "connection_id": c.connection_id,
                    "rooms": sorted(c.rooms),
                    "connected_at": c.connected_at.isoformat()
                }
                for c in self.connections.values()
            ]
        }

    async def _deliver(self, targets: List[RelayConnection], message: Dict[str, Any]) -> int:
        payload = json.dumps(message)
        delivered = 0
        failed = []

        for connection in targets:
            try:
                await connection.websocket.send_text(payload)
                delivered += 1
            except Exception as e:
                self.logger.warning("Send failed, dropping connection", connection_id=connection.connection_id, error=str(e))
                failed.append(connection.connection_id)

        if failed:
            async with self._lock:
                removed = [cid for cid in failed if self._forget(cid)]

            # Each round removes at least one member, so a failing announcement terminates
            if removed:
                await self.announce_online_users()

        return delivered

    def _snapshot(self, connection_ids) -> List[RelayConnection]:
        return [self.connections[cid] for cid in list(connection_ids) if cid in self.connections]

    def _forget(self, connection_id: str) -> bool:
        connection = self.connections.pop(connection_id, None)
        if not connection:
            return False

        for room in connection.rooms:
            self._discard_member(room, connection_id)
        self._update_gauges()
        return True

    def _discard_member(self, room: str, connection_id: str):
        members = self.rooms.get(room)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            del self.rooms[room]

    def _update_gauges(self):
        if self.metrics:
            self.metrics.set_gauge("online_connections", len(self.connections))
            self.metrics.set_gauge("active_rooms", len(self.rooms))
