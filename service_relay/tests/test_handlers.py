"""
Unit tests for relay WebSocket message handling.
"""

import json

import pytest
import pytest_asyncio

from service_relay.app.rooms.manager import RoomManager
from service_relay.app.ws.handlers import RelayMessageHandler, disaster_room, error_frame
from shared.test_helpers import RecordingWebSocket


class TestRelayMessageHandler:
    """Test cases for RelayMessageHandler."""

    @pytest.fixture
    def rooms(self):
        return RoomManager()

    @pytest.fixture
    def handler(self, rooms):
        return RelayMessageHandler(rooms)

    @pytest_asyncio.fixture
    async def connection_id(self, rooms):
        return await rooms.connect(RecordingWebSocket())

    async def _send(self, handler, connection_id, payload):
        text = payload if isinstance(payload, str) else json.dumps(payload)
        return await handler.handle_message(connection_id, text)

    def test_disaster_room(self):
        assert disaster_room(42) == "disaster_42"

    def test_error_frame(self):
        assert error_frame("X", "bad") == {"event": "error", "data": {"code": "X", "message": "bad"}}

    @pytest.mark.asyncio
    async def test_join_disaster_by_id(self, handler, rooms, connection_id):
        reply = await self._send(handler, connection_id, {"event": "join_disaster", "data": 42})

        assert reply == {"event": "joined", "data": {"room": "disaster_42"}}
        assert rooms.members("disaster_42") == {connection_id}

    @pytest.mark.asyncio
    async def test_join_disaster_by_object(self, handler, rooms, connection_id):
        reply = await self._send(handler, connection_id, {"event": "join_disaster", "data": {"disaster_id": "abc"}})

        assert reply["data"]["room"] == "disaster_abc"

    @pytest.mark.asyncio
    async def test_leave_disaster(self, handler, rooms, connection_id):
        await self._send(handler, connection_id, {"event": "join_disaster", "data": 42})

        reply = await self._send(handler, connection_id, {"event": "leave_disaster", "data": 42})

        assert reply == {"event": "left", "data": {"room": "disaster_42"}}
        assert rooms.members("disaster_42") == set()

    @pytest.mark.asyncio
    async def test_join_and_leave_named_room(self, handler, rooms, connection_id):
        joined = await self._send(handler, connection_id, {"event": "join_room", "data": "global"})
        assert joined["data"]["room"] == "global"
        assert rooms.members("global") == {connection_id}

        left = await self._send(handler, connection_id, {"event": "leave_room", "data": {"room": "global"}})
        assert left["event"] == "left"
        assert rooms.members("global") == set()

    @pytest.mark.asyncio
    async def test_ping(self, handler, connection_id):
        reply = await self._send(handler, connection_id, {"event": "ping"})

        assert reply["event"] == "pong"
        assert "timestamp" in reply["data"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload, code", [
        ("{not json", "INVALID_JSON"),
        ("[1, 2]", "INVALID_FORMAT"),
        ({"data": 1}, "INVALID_FORMAT"),
        ({"event": "subscribe"}, "UNKNOWN_EVENT"),
        ({"event": "join_disaster"}, "MISSING_DISASTER_ID"),
        ({"event": "join_disaster", "data": True}, "MISSING_DISASTER_ID"),
        ({"event": "leave_disaster", "data": {"disaster_id": ""}}, "MISSING_DISASTER_ID"),
        ({"event": "join_room", "data": "  "}, "MISSING_ROOM"),
        ({"event": "leave_room"}, "MISSING_ROOM"),
    ])
    async def test_error_replies(self, handler, connection_id, payload, code):
        reply = await self._send(handler, connection_id, payload)

        assert reply["event"] == "error"
        assert reply["data"]["code"] == code

    @pytest.mark.asyncio
    async def test_unknown_connection(self, handler):
        reply = await self._send(handler, "missing", {"event": "join_room", "data": "global"})

        assert reply["data"]["code"] == "CONNECTION_NOT_FOUND"
