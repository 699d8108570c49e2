"""
Test helper functions and factory methods for the Relief Intelligence Layer.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx


class FakeClock:
    """Manually advanced UTC clock usable as a CacheStore clock."""

    def __init__(self, start: Optional[datetime] = None):
        self.current = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **delta) -> datetime:
        self.current = self.current + timedelta(**delta)
        return self.current


@dataclass
class RecordingWebSocket:
    """Stand-in for a server-side WebSocket that records sent frames."""
    fail_sends: bool = False
    sent: List[Dict[str, Any]] = field(default_factory=list)
    closed: bool = False

    async def send_text(self, text: str):
        if self.fail_sends:
            raise RuntimeError("connection reset")
        self.sent.append(json.loads(text))

    async def close(self):
        self.closed = True

    def events(self, name: Optional[str] = None) -> List[Dict[str, Any]]:
        return [f for f in self.sent if name is None or f.get("event") == name]


Route = Tuple[str, str]
Handler = Callable[[httpx.Request], httpx.Response]


def route_transport(routes: Dict[Route, Any]) -> httpx.MockTransport:
    """Build a MockTransport answering ``(METHOD, host+path)`` routes.

    A route value may be an ``httpx.Response``, a callable taking the
    request, or an exception instance to raise. Unknown routes get a 404.
    """
    calls: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        target = routes.get((request.method, f"{request.url.host}{request.url.path}"))
        if target is None:
            return httpx.Response(404, json={"error": "not found"})
        if isinstance(target, Exception):
            raise target
        if callable(target):
            return target(request)
        return target

    transport = httpx.MockTransport(handler)
    transport.calls = calls
    return transport


class TestDataFactory:
    """Factory for creating test data."""

    __test__ = False

    @staticmethod
    def flood_report() -> str:
        return "URGENT: Flooding in Manhattan, NYC. Families trapped, need water and medical help."

    @staticmethod
    def google_geocode_payload(lat: float = 48.8566, lng: float = 2.3522,
                               address: str = "Paris, France") -> Dict[str, Any]:
        return {
            "status": "OK",
            "results": [
                {
                    "formatted_address": address,
                    "geometry": {"location": {"lat": lat, "lng": lng}}
                }
            ]
        }

    @staticmethod
    def nominatim_payload(lat: str = "34.0522", lon: str = "-118.2437",
                          name: str = "Los Angeles, California, USA") -> List[Dict[str, Any]]:
        return [{"lat": lat, "lon": lon, "display_name": name}]

    @staticmethod
    def twitter_payload() -> Dict[str, Any]:
        return {
            "data": [
                {
                    "id": "1001",
                    "text": "Water rising fast near the river, need rescue boats",
                    "author_id": "u1",
                    "created_at": "2024-01-01T11:55:00Z",
                    "public_metrics": {"like_count": 4, "retweet_count": 2, "reply_count": 1},
                    "geo": {"place_id": "p1"}
                }
            ],
            "includes": {
                "users": [{"id": "u1", "username": "river_watch"}],
                "places": [{"id": "p1", "full_name": "Hoboken, NJ"}]
            }
        }

    @staticmethod
    def fema_html() -> str:
        return """
        <html><body>
          <div class="disaster-item">
            <h3 class="title">Major Disaster Declaration - Coastal Flooding</h3>
            <p class="description">Federal assistance approved for affected counties.</p>
            <span class="date">2024-01-01</span>
          </div>
          <div class="disaster-item">
            <h3 class="title">Emergency Declaration - Winter Storm</h3>
            <p class="description">Emergency protective measures authorized.</p>
          </div>
          <div class="disaster-item">
            <h3 class="title"></h3>
            <p class="description">Card without a title is skipped.</p>
          </div>
        </body></html>
        """
