"""
Unit tests for the Enrichment relay client.
"""

import json
from datetime import datetime, timezone

import httpx
import pytest
from prometheus_client import CollectorRegistry

from service_enrichment.app.realtime.client import (
    REPORT_CREATED, RESOURCES_UPDATED, SOCIAL_MEDIA_UPDATED, RelayClient, disaster_room
)
from shared.metrics import MetricsCollector
from shared.test_helpers import route_transport


EMIT = ("POST", "relay.local/emit")


class TestRelayClient:
    """Test cases for RelayClient."""

    @pytest.fixture
    def metrics(self):
        return MetricsCollector("enrichment", CollectorRegistry())

    def test_disaster_room(self):
        assert disaster_room(42) == "disaster_42"
        assert disaster_room("abc") == "disaster_abc"

    @pytest.mark.asyncio
    async def test_emit_success(self, metrics):
        transport = route_transport({EMIT: httpx.Response(200, json={"success": True, "delivered": 2})})
        client = RelayClient("http://relay.local/", metrics=metrics, transport=transport)

        ok = await client.emit(RESOURCES_UPDATED, "disaster_42", {"id": 7})

        assert ok is True
        body = json.loads(transport.calls[0].content)
        assert body == {"event": "resources_updated", "room": "disaster_42", "data": {"id": 7}}
        assert "X-Relay-Token" not in transport.calls[0].headers
        assert metrics.registry.get_sample_value(
            "relay_notifications_total", {"event": "resources_updated", "status": "sent"}
        ) == 1.0

    @pytest.mark.asyncio
    async def test_emit_sends_token(self):
        transport = route_transport({EMIT: httpx.Response(200, json={"success": True, "delivered": 0})})
        client = RelayClient("http://relay.local", token="s3cret", transport=transport)

        assert await client.emit(SOCIAL_MEDIA_UPDATED, "disaster_1", {}) is True
        assert transport.calls[0].headers["X-Relay-Token"] == "s3cret"

    @pytest.mark.asyncio
    async def test_connection_error_returns_false(self):
        transport = route_transport({EMIT: httpx.ConnectError("connection refused")})
        client = RelayClient("http://relay.local", transport=transport)

        assert await client.emit(RESOURCES_UPDATED, "disaster_42", {}) is False

    @pytest.mark.asyncio
    async def test_timeout_returns_false(self):
        transport = route_transport({EMIT: httpx.ReadTimeout("slow relay")})
        client = RelayClient("http://relay.local", transport=transport)

        assert await client.emit(RESOURCES_UPDATED, "disaster_42", {}) is False

    @pytest.mark.asyncio
    async def test_rejected_returns_false(self, metrics):
        transport = route_transport({EMIT: httpx.Response(400, json={"success": False, "error": "bad"})})
        client = RelayClient("http://relay.local", metrics=metrics, transport=transport)

        assert await client.emit(RESOURCES_UPDATED, "disaster_42", {}) is False
        assert metrics.registry.get_sample_value(
            "relay_notifications_total", {"event": "resources_updated", "status": "rejected"}
        ) == 1.0

    @pytest.mark.asyncio
    async def test_unserializable_payload_returns_false(self, metrics):
        transport = route_transport({EMIT: httpx.Response(200, json={"success": True, "delivered": 1})})
        client = RelayClient("http://relay.local", metrics=metrics, transport=transport)

        ok = await client.emit(REPORT_CREATED, "disaster_1", {"at": datetime.now(timezone.utc)})

        assert ok is False
        assert transport.calls == []
        assert metrics.registry.get_sample_value(
            "relay_notifications_total", {"event": "report_created", "status": "error"}
        ) == 1.0

    @pytest.mark.asyncio
    async def test_disabled_makes_no_request(self):
        transport = route_transport({EMIT: httpx.Response(200, json={"success": True})})
        client = RelayClient("http://relay.local", enabled=False, transport=transport)

        assert await client.emit(RESOURCES_UPDATED, "disaster_42", {}) is False
        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_health_check(self):
        transport = route_transport({("GET", "relay.local/health"): httpx.Response(200, json={"status": "ok"})})
        client = RelayClient("http://relay.local", transport=transport)

        assert await client.health_check() is True
