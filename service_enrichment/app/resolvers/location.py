"""
Location extraction and geocoding resolvers.
"""

import re
from typing import Any, Dict, List, Optional, Tuple

from shared.errors import InputError
from ..providers.gemini import GeminiClient
from ..providers.geocoding import GoogleGeocodingClient, NominatimClient
from .base import Resolver, Strategy, make_key


UNKNOWN_LOCATION = "Unknown Location"

# (pattern, canonical name) checked in order against the raw text
KNOWN_PLACES = [
    (re.compile(r"NYC|Manhattan"), "Manhattan, NYC"),
    (re.compile(r"\bLA\b|Angeles"), "Los Angeles, CA"),
]

PLACE_PATTERN = re.compile(r"\b([A-Z][a-z]+(?: [A-Z][a-z]+)*,?\s*[A-Z]{2,})\b")

KNOWN_COORDINATES = {
    "manhattan, nyc": {"lat": 40.7831, "lng": -73.9712},
    "new york, ny": {"lat": 40.7128, "lng": -74.0060},
    "los angeles, ca": {"lat": 34.0522, "lng": -118.2437},
    "chicago, il": {"lat": 41.8781, "lng": -87.6298},
    "houston, tx": {"lat": 29.7604, "lng": -95.3698},
}

DEFAULT_COORDINATES = {"lat": 40.7128, "lng": -74.0060}


def normalize_location(location: str) -> str:
    return " ".join(location.lower().split())


def match_known_place(text: str) -> Optional[str]:
    for pattern, name in KNOWN_PLACES:
        if pattern.search(text):
            return name
    return None


def match_place_pattern(text: str) -> Optional[str]:
    match = PLACE_PATTERN.search(text)
    return match.group(0) if match else None


class LocationExtractor(Resolver[str]):
    """Pulls the most specific place name out of free text."""

    name = "location_extractor"
    namespace = "location_extract"

    def __init__(self, cache, gemini: Optional[GeminiClient] = None, **kwargs):
        super().__init__(cache, **kwargs)
        self.gemini = gemini

    def validate(self, inputs: str) -> None:
        if not isinstance(inputs, str) or not inputs.strip():
            raise InputError("Text is required for location extraction")

    def cache_key(self, inputs: str) -> str:
        return make_key(self.namespace, inputs.strip())

    def strategies(self) -> List[Strategy[str]]:
        if not self.gemini:
            return []
        return [Strategy("gemini", self._ask_gemini)]

    async def _ask_gemini(self, text: str) -> Optional[str]:
        location = await self.gemini.extract_location(text)
        return location or None

    async def offline(self, inputs: str) -> Tuple[str, Any]:
        place = match_known_place(inputs)
        if place:
            return "known_places", place

        place = match_place_pattern(inputs)
        if place:
            return "text_pattern", place

        return "none", UNKNOWN_LOCATION

    def placeholder(self, inputs: str) -> Any:
        return UNKNOWN_LOCATION

    async def extract(self, text: str) -> str:
        resolution = await self.resolve(text)
        return resolution.value


class LocationResolver(Resolver[str]):
    """Turns a place name into coordinates.

    Google is tried first when an API key is configured, then OSM Nominatim,
    then a small table of known cities. Anything else lands on New York with
    the provider labelled ``default``.
    """

    name = "location_resolver"
    namespace = "geocode"

    def __init__(
        self,
        cache,
        google: Optional[GoogleGeocodingClient] = None,
        osm: Optional[NominatimClient] = None,
        **kwargs
    ):
        super().__init__(cache, **kwargs)
        self.google = google
        self.osm = osm

    def validate(self, inputs: str) -> None:
        if not isinstance(inputs, str) or not inputs.strip():
            raise InputError("Location name is required for geocoding")

    def cache_key(self, inputs: str) -> str:
        return make_key(self.namespace, normalize_location(inputs))

    def strategies(self) -> List[Strategy[str]]:
        strategies = []
        if self.google:
            strategies.append(Strategy("google", self.google.geocode))
        if self.osm:
            strategies.append(Strategy("osm", self.osm.geocode))
        return strategies

    async def offline(self, inputs: str) -> Tuple[str, Any]:
        known = KNOWN_COORDINATES.get(normalize_location(inputs))
        if known:
            return "mock", {**known, "formatted_address": inputs.strip()}
        return "default", self.placeholder(inputs)

    def placeholder(self, inputs: str) -> Dict[str, Any]:
        return {**DEFAULT_COORDINATES, "formatted_address": inputs.strip()}

    async def geocode(self, location: str) -> Dict[str, Any]:
        """Coordinates plus the name of the service that produced them."""
        resolution = await self.resolve(location)
        return {**resolution.value, "service": resolution.provider}
