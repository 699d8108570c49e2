"""
Cache-aside resolvers for the Enrichment Service.
"""

from .base import Resolution, Resolver, Strategy, make_key
from .content import ContentAnalyzer, enrich_items
from .image import ImageAuthenticityResolver, ImageCheck, verification_status
from .location import LocationExtractor, LocationResolver, UNKNOWN_LOCATION
from .official import BulletinQuery, OfficialBulletinAggregator
from .social import SocialQuery, SocialSignalAggregator

__all__ = [
    "Resolution",
    "Resolver",
    "Strategy",
    "make_key",
    "ContentAnalyzer",
    "enrich_items",
    "ImageAuthenticityResolver",
    "ImageCheck",
    "verification_status",
    "LocationExtractor",
    "LocationResolver",
    "UNKNOWN_LOCATION",
    "BulletinQuery",
    "OfficialBulletinAggregator",
    "SocialQuery",
    "SocialSignalAggregator",
]
