"""
Request and response models for the Enrichment Service.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class GeocodeRequest(BaseModel):
    """Free text to extract a location from and geocode."""
    text: Optional[str] = None


class Coordinates(BaseModel):
    lat: float
    lng: float


class GeocodeResponse(BaseModel):
    original_text: str
    extracted_location: str
    coordinates: Coordinates
    formatted_address: str
    geocoding_service: str
    timestamp: str


class VerifyImageRequest(BaseModel):
    image_url: Optional[str] = None
    context: Optional[str] = None


class AnalyzeRequest(BaseModel):
    text: Optional[str] = None


class RefreshResponse(BaseModel):
    """Result of a refresh plus whether the relay accepted the announcement."""
    disaster_id: str
    total: int
    notified: bool
    data: Dict[str, Any]


class CacheInvalidationResponse(BaseModel):
    key: str
    deleted: bool


def split_csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


class SweepResponse(BaseModel):
    message: str
    deleted: int
    duration_seconds: float
    error: Optional[str] = Field(default=None)
