"""
Unit tests for the relay RoomManager.
"""

import pytest
from prometheus_client import CollectorRegistry

from service_relay.app.rooms.manager import RoomManager, frame
from shared.errors import RelayUnavailable
from shared.metrics import MetricsCollector
from shared.test_helpers import RecordingWebSocket


class TestRoomManager:
    """Test cases for RoomManager."""

    @pytest.fixture
    def metrics(self):
        return MetricsCollector("relay", CollectorRegistry())

    @pytest.fixture
    def manager(self, metrics):
        return RoomManager(max_connections=3, metrics=metrics)

    @pytest.mark.asyncio
    async def test_connect_announces_online_users(self, manager):
        first = RecordingWebSocket()
        second = RecordingWebSocket()

        await manager.connect(first)
        await manager.connect(second)

        assert [f["data"] for f in first.events("online_users")] == [1, 2]
        assert [f["data"] for f in second.events("online_users")] == [2]

    @pytest.mark.asyncio
    async def test_disconnect_announces_and_clears_rooms(self, manager):
        staying = RecordingWebSocket()
        leaving = RecordingWebSocket()
        await manager.connect(staying)
        leaving_id = await manager.connect(leaving)
        await manager.join(leaving_id, "disaster_42")

        await manager.disconnect(leaving_id)

        assert staying.events("online_users")[-1]["data"] == 1
        assert manager.members("disaster_42") == set()
        assert "disaster_42" not in manager.rooms

    @pytest.mark.asyncio
    async def test_disconnect_unknown_connection_is_silent(self, manager):
        ws = RecordingWebSocket()
        await manager.connect(ws)
        sent_before = len(ws.sent)

        await manager.disconnect("missing")

        assert len(ws.sent) == sent_before

    @pytest.mark.asyncio
    async def test_broadcast_reaches_only_room_members(self, manager):
        member = RecordingWebSocket()
        outsider = RecordingWebSocket()
        member_id = await manager.connect(member)
        await manager.connect(outsider)
        await manager.join(member_id, "disaster_42")

        delivered = await manager.broadcast_to_room("disaster_42", frame("resources_updated", {"id": 1}))

        assert delivered == 1
        assert member.events("resources_updated") == [{"event": "resources_updated", "data": {"id": 1}}]
        assert outsider.events("resources_updated") == []

    @pytest.mark.asyncio
    async def test_broadcast_to_empty_room(self, manager):
        assert await manager.broadcast_to_room("disaster_7", frame("resources_updated")) == 0

    @pytest.mark.asyncio
    async def test_join_is_idempotent_and_leave_removes(self, manager):
        ws = RecordingWebSocket()
        connection_id = await manager.connect(ws)

        assert await manager.join(connection_id, "global") is True
        assert await manager.join(connection_id, "global") is True
        assert manager.members("global") == {connection_id}

        assert await manager.leave(connection_id, "global") is True
        assert await manager.broadcast_to_room("global", frame("disaster_updated")) == 0

    @pytest.mark.asyncio
    async def test_leave_room_never_joined(self, manager):
        connection_id = await manager.connect(RecordingWebSocket())

        assert await manager.leave(connection_id, "disaster_9") is True

    @pytest.mark.asyncio
    async def test_join_unknown_connection(self, manager):
        assert await manager.join("missing", "global") is False
        assert await manager.leave("missing", "global") is False

    @pytest.mark.asyncio
    async def test_failed_send_drops_member(self, manager):
        healthy = RecordingWebSocket()
        broken = RecordingWebSocket()
        healthy_id = await manager.connect(healthy)
        broken_id = await manager.connect(broken)
        await manager.join(healthy_id, "disaster_42")
        await manager.join(broken_id, "disaster_42")
        broken.fail_sends = True
        announcements = len(healthy.events("online_users"))

        delivered = await manager.broadcast_to_room("disaster_42", frame("report_created", {"id": 3}))

        assert delivered == 1
        assert manager.online_count == 1
        assert manager.members("disaster_42") == {healthy_id}
        assert len(healthy.events("online_users")) == announcements + 1
        assert healthy.events("online_users")[-1]["data"] == 1

    @pytest.mark.asyncio
    async def test_failing_announcement_drops_every_broken_member(self, manager):
        healthy = RecordingWebSocket()
        first = RecordingWebSocket()
        second = RecordingWebSocket()
        healthy_id = await manager.connect(healthy)
        first_id = await manager.connect(first)
        await manager.connect(second)
        await manager.join(healthy_id, "disaster_42")
        await manager.join(first_id, "disaster_42")
        first.fail_sends = True
        second.fail_sends = True

        delivered = await manager.broadcast_to_room("disaster_42", frame("report_created", {"id": 4}))

        assert delivered == 1
        assert manager.online_count == 1
        assert [f["data"] for f in healthy.events("online_users")][-2:] == [2, 1]

    @pytest.mark.asyncio
    async def test_connection_limit(self, manager):
        for _ in range(3):
            await manager.connect(RecordingWebSocket())

        with pytest.raises(RelayUnavailable) as exc_info:
            await manager.connect(RecordingWebSocket())

        assert exc_info.value.code == "RELAY_UNAVAILABLE"
        assert manager.online_count == 3

    @pytest.mark.asyncio
    async def test_close_all(self, manager, metrics):
        sockets = [RecordingWebSocket(), RecordingWebSocket()]
        for ws in sockets:
            connection_id = await manager.connect(ws)
            await manager.join(connection_id, "global")

        await manager.close_all()

        assert all(ws.closed for ws in sockets)
        assert manager.online_count == 0
        assert metrics.registry.get_sample_value("online_connections") == 0.0
        assert metrics.registry.get_sample_value("active_rooms") == 0.0

    @pytest.mark.asyncio
    async def test_stats_and_gauges(self, manager, metrics):
        connection_id = await manager.connect(RecordingWebSocket())
        await manager.join(connection_id, "disaster_42")

        stats = manager.get_stats()

        assert stats["online_users"] == 1
        assert stats["rooms"] == {"disaster_42": 1}
        assert stats["connections"][0]["rooms"] == ["disaster_42"]
        assert metrics.registry.get_sample_value("online_connections") == 1.0
        assert metrics.registry.get_sample_value("active_rooms") == 1.0
