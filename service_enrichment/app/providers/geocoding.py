"""
Geocoding provider clients.
"""

from typing import Any, Dict, Optional

from shared.errors import UpstreamError
from .base import ProviderClient


class GoogleGeocodingClient(ProviderClient):
    """Google Maps Geocoding API."""

    provider = "google"

    GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"

    def __init__(self, api_key: str, **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key

    async def geocode(self, location: str) -> Optional[Dict[str, Any]]:
        """Return coordinates for ``location`` or None when nothing matched."""
        data = await self._get_json(
            self.GEOCODE_URL,
            params={"address": location, "key": self.api_key}
        )

        status = data.get("status")
        if status not in (None, "OK", "ZERO_RESULTS"):
            raise UpstreamError(self.provider, f"geocoding status {status}")

        results = data.get("results") or []
        if not results:
            return None

        try:
            first = results[0]
            point = first["geometry"]["location"]
            return {
                "lat": float(point["lat"]),
                "lng": float(point["lng"]),
                "formatted_address": first.get("formatted_address", location)
            }
        except (KeyError, TypeError, ValueError) as e:
            raise UpstreamError(self.provider, "malformed geocoding result") from e


class NominatimClient(ProviderClient):
    """OpenStreetMap Nominatim search."""

    provider = "osm"

    SEARCH_URL = "https://nominatim.openstreetmap.org/search"

    def __init__(self, user_agent: str, **kwargs):
        super().__init__(**kwargs)
        self.user_agent = user_agent

    async def geocode(self, location: str) -> Optional[Dict[str, Any]]:
        data = await self._get_json(
            self.SEARCH_URL,
            params={"q": location, "format": "json", "limit": 1},
            headers={"User-Agent": self.user_agent}
        )

        if not data:
            return None

        try:
            first = data[0]
            return {
                "lat": float(first["lat"]),
                "lng": float(first["lon"]),
                "formatted_address": first.get("display_name", location)
            }
        except (KeyError, TypeError, ValueError, IndexError) as e:
            raise UpstreamError(self.provider, "malformed search result") from e
