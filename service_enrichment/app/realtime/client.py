"""
Relay client for announcing state changes to live subscribers.
"""

from typing import Any, Optional, TYPE_CHECKING

import httpx

from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


DISASTER_UPDATED = "disaster_updated"
REPORT_CREATED = "report_created"
RESOURCES_UPDATED = "resources_updated"
SOCIAL_MEDIA_UPDATED = "social_media_updated"
OFFICIAL_UPDATES_REFRESHED = "official_updates_refreshed"

GLOBAL_ROOM = "global"


def disaster_room(disaster_id: Any) -> str:
    return f"disaster_{disaster_id}"


class RelayClient:
    """Fire-and-forget sender for the realtime relay's ``/emit`` endpoint.

    ``emit`` makes one attempt and reports the outcome as a bool. It never
    raises, retries, or queues, so callers can announce a change without
    tying their own success to delivery.
    """

    def __init__(
        self,
        relay_url: str,
        timeout: float = 2.0,
        enabled: bool = True,
        token: Optional[str] = None,
        metrics: Optional["MetricsCollector"] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.relay_url = relay_url.rstrip("/")
        self.timeout = timeout
        self.enabled = enabled
        self.token = token
        self.metrics = metrics
        self.transport = transport
        self.logger = get_logger("enrichment.relay_client")

    async def emit(self, event: str, room: str, data: Any = None) -> bool:
        if not self.enabled:
            self.logger.debug("Relay disabled, dropping event", event_name=event, room=room)
            self._record(event, "disabled")
            return False

        headers = {"X-Relay-Token": self.token} if self.token else None

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    f"{self.relay_url}/emit",
                    json={"event": event, "room": room, "data": data},
                    headers=headers
                )

        except httpx.TimeoutException:
            self.logger.warning("Relay emit timed out", event_name=event, room=room)
            self._record(event, "timeout")
            return False
        except httpx.RequestError as e:
            self.logger.warning("Relay unreachable", event_name=event, room=room, error=str(e))
            self._record(event, "unreachable")
            return False
        except Exception as e:
            self.logger.error("Relay emit failed", event_name=event, room=room, error=str(e))
            self._record(event, "error")
            return False

        if response.status_code // 100 != 2:
            self.logger.warning("Relay rejected event", event_name=event, room=room, status_code=response.status_code)
            self._record(event, "rejected")
            return False

        self.logger.info("Relay event emitted", event_name=event, room=room)
        self._record(event, "sent")
        return True

    async def health_check(self) -> bool:
        if not self.enabled:
            return False
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(f"{self.relay_url}/health")
            return response.status_code == 200
        except httpx.HTTPError as e:
            self.logger.debug("Relay health check failed", error=str(e))
            return False

    def _record(self, event: str, status: str):
        if self.metrics:
            self.metrics.increment_counter("relay_notifications_total", event=event, status=status)
