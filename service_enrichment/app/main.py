"""
Enrichment service for the Relief Intelligence Layer.

Mediates every external lookup (geocoding, social signal, official bulletins,
image authenticity, content analysis) through the cache-aside resolvers and
announces refreshed data to the realtime relay.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import Query
from fastapi.responses import JSONResponse

from shared.base_service import BaseService
from shared.circuit_breaker import CircuitBreakerRegistry
from shared.errors import InputError
from shared.logging import set_disaster_context

from .cache.factory import create_cache_store
from .cache.store import CacheStore, Clock
from .cache.sweeper import CleanupSweeper
from .models import (
    AnalyzeRequest, CacheInvalidationResponse, Coordinates, GeocodeRequest,
    GeocodeResponse, RefreshResponse, SweepResponse, VerifyImageRequest, split_csv
)
from .providers.fema import FemaScraper
from .providers.gemini import GeminiClient
from .providers.geocoding import GoogleGeocodingClient, NominatimClient
from .providers.twitter import TwitterSearchClient
from .realtime.client import (
    OFFICIAL_UPDATES_REFRESHED, SOCIAL_MEDIA_UPDATED, RelayClient, disaster_room
)
from .resolvers import (
    BulletinQuery, ContentAnalyzer, ImageAuthenticityResolver, LocationExtractor,
    LocationResolver, OfficialBulletinAggregator, SocialQuery, SocialSignalAggregator,
    UNKNOWN_LOCATION, verification_status
)


class EnrichmentService(BaseService):
    """Enrichment service implementation."""

    def __init__(
        self,
        cache: Optional[CacheStore] = None,
        relay: Optional[RelayClient] = None,
        clock: Optional[Clock] = None,
        **config_overrides
    ):
        super().__init__("enrichment", 8000, **config_overrides)

        self.cache = cache or create_cache_store(self.config, clock=clock)
        self.breakers = CircuitBreakerRegistry(
            failure_threshold=self.config.circuit_failure_threshold,
            recovery_timeout=self.config.circuit_recovery_timeout
        )
        self.relay = relay or RelayClient(
            self.config.relay_url,
            timeout=self.config.relay_timeout_seconds,
            enabled=self.config.relay_enabled,
            token=self.config.relay_emit_token,
            metrics=self.metrics
        )
        self.sweeper = CleanupSweeper(
            self.cache,
            interval_seconds=self.config.sweep_interval_seconds,
            metrics=self.metrics
        )

        self._setup_resolvers()
        self._setup_enrichment_routes()

    def _setup_resolvers(self):
        """Build provider clients for whatever is configured and wire the resolvers."""
        config = self.config
        timeout = config.provider_timeout_seconds

        gemini = None
        if config.gemini_api_key:
            gemini = GeminiClient(
                config.gemini_api_key,
                model=config.gemini_model,
                vision_model=config.gemini_vision_model,
                timeout=timeout
            )

        google = GoogleGeocodingClient(config.google_maps_api_key, timeout=timeout) if config.google_maps_api_key else None
        osm = NominatimClient(config.osm_user_agent, timeout=timeout) if config.osm_geocoding_enabled else None
        twitter = TwitterSearchClient(config.twitter_bearer_token, timeout=timeout) if config.twitter_bearer_token else None
        fema = FemaScraper(config.fema_url, config.osm_user_agent, timeout=timeout) if config.fema_scraping_enabled else None

        common = {"breakers": self.breakers, "metrics": self.metrics}

        self.location_extractor = LocationExtractor(
            self.cache, gemini=gemini,
            ttl_seconds=config.location_extract_ttl,
            fallback_ttl_seconds=config.location_extract_fallback_ttl,
            **common
        )
        self.location_resolver = LocationResolver(
            self.cache, google=google, osm=osm,
            ttl_seconds=config.geocode_ttl,
            fallback_ttl_seconds=config.geocode_fallback_ttl,
            **common
        )
        self.image_resolver = ImageAuthenticityResolver(
            self.cache, gemini=gemini,
            ttl_seconds=config.image_verify_ttl,
            fallback_ttl_seconds=config.image_verify_fallback_ttl,
            **common
        )
        self.content_analyzer = ContentAnalyzer(
            self.cache, gemini=gemini,
            ttl_seconds=config.content_analysis_ttl,
            fallback_ttl_seconds=config.content_analysis_fallback_ttl,
            **common
        )
        self.social_aggregator = SocialSignalAggregator(
            self.cache, twitter=twitter, analyzer=self.content_analyzer,
            ttl_seconds=config.social_media_ttl,
            fallback_ttl_seconds=config.social_media_fallback_ttl,
            **common
        )
        self.official_aggregator = OfficialBulletinAggregator(
            self.cache, fema=fema, analyzer=self.content_analyzer,
            ttl_seconds=config.official_updates_ttl,
            fallback_ttl_seconds=config.official_updates_fallback_ttl,
            **common
        )

        self.logger.info(
            "Resolvers configured",
            cache_backend=self.cache.backend,
            gemini=bool(gemini),
            google=bool(google),
            osm=bool(osm),
            twitter=bool(twitter),
            fema=bool(fema)
        )

    def _setup_enrichment_routes(self):
        """Set up enrichment-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "enrichment",
                "message": "Relief Intelligence Layer - Enrichment Service",
                "version": "1.0.0",
                "capabilities": [
                    "geocoding", "image_verification", "content_analysis",
                    "social_media", "official_updates", "cache_cleanup"
                ]
            }

        @self.app.post("/geocode", response_model=GeocodeResponse)
        async def geocode(request: GeocodeRequest):
            """Extract a location from free text and geocode it."""
            text = request.text
            if not text or not text.strip():
                raise InputError("Text parameter is required")

            extracted = await self.location_extractor.extract(text)
            if not extracted or extracted == UNKNOWN_LOCATION:
                raise InputError(
                    "Could not extract location from the provided text",
                    {"extracted_location": extracted}
                )

            result = await self.location_resolver.geocode(extracted)
            self.logger.info(
                "Geocoding completed",
                extracted_location=extracted,
                service=result["service"]
            )

            return GeocodeResponse(
                original_text=text,
                extracted_location=extracted,
                coordinates=Coordinates(lat=result["lat"], lng=result["lng"]),
                formatted_address=result["formatted_address"],
                geocoding_service=result["service"],
                timestamp=datetime.now(timezone.utc).isoformat()
            )

        @self.app.post("/verify-image")
        async def verify_image(request: VerifyImageRequest):
            """Check whether an image looks authentic."""
            resolution = await self.image_resolver.resolve_url(request.image_url, request.context)
            verdict = resolution.value
            return {
                "verification": verdict,
                "verification_status": verification_status(verdict),
                "provider": resolution.provider,
                "cached": resolution.cached
            }

        @self.app.post("/analyze")
        async def analyze(request: AnalyzeRequest):
            """Summarize text and rate its urgency."""
            resolution = await self.content_analyzer.resolve(request.text or "")
            return {
                "analysis": resolution.value,
                "provider": resolution.provider,
                "cached": resolution.cached
            }

        @self.app.get("/disasters/{disaster_id}/social-media")
        async def social_media(
            disaster_id: str,
            keywords: Optional[str] = Query(None, description="Comma separated keywords")
        ):
            """Aggregated social signal for a disaster."""
            set_disaster_context(disaster_id)
            return await self.social_aggregator.fetch(disaster_id, split_csv(keywords))

        @self.app.get("/disasters/{disaster_id}/official-updates")
        async def official_updates(
            disaster_id: str,
            sources: Optional[str] = Query(None, description="Comma separated source names")
        ):
            """Aggregated official bulletins for a disaster."""
            set_disaster_context(disaster_id)
            return await self.official_aggregator.fetch(disaster_id, split_csv(sources))

        @self.app.post("/disasters/{disaster_id}/social-media/refresh", response_model=RefreshResponse)
        async def refresh_social_media(
            disaster_id: str,
            keywords: Optional[str] = Query(None, description="Comma separated keywords")
        ):
            """Re-resolve social signal and announce it to the disaster's room."""
            set_disaster_context(disaster_id)
            query = SocialQuery(disaster_id=disaster_id, keywords=split_csv(keywords))
            data = await self._refresh(self.social_aggregator, query)
            return await self._announce(disaster_id, SOCIAL_MEDIA_UPDATED, data, data["posts"])

        @self.app.post("/disasters/{disaster_id}/official-updates/refresh", response_model=RefreshResponse)
        async def refresh_official_updates(
            disaster_id: str,
            sources: Optional[str] = Query(None, description="Comma separated source names")
        ):
            """Re-resolve official bulletins and announce them to the disaster's room."""
            set_disaster_context(disaster_id)
            query = BulletinQuery(disaster_id=disaster_id, sources=split_csv(sources))
            data = await self._refresh(self.official_aggregator, query)
            return await self._announce(disaster_id, OFFICIAL_UPDATES_REFRESHED, data, data["updates"])

        @self.app.post("/cron/cache-cleanup", response_model=SweepResponse)
        async def cache_cleanup():
            """Delete expired cache entries."""
            result = await self.sweeper.sweep()
            if not result.succeeded:
                return JSONResponse(
                    status_code=500,
                    content=SweepResponse(
                        message="Failed to cleanup cache",
                        deleted=0,
                        duration_seconds=result.duration_seconds,
                        error=result.error
                    ).model_dump()
                )

            return SweepResponse(
                message="Cache cleanup completed successfully.",
                deleted=result.deleted,
                duration_seconds=result.duration_seconds
            )

        @self.app.delete("/cache/{key:path}", response_model=CacheInvalidationResponse)
        async def invalidate(key: str):
            """Drop one cache entry."""
            deleted = await self.cache.delete(key)
            return CacheInvalidationResponse(key=key, deleted=deleted)

    async def _refresh(self, resolver, query):
        """Drop the cached value for ``query`` and resolve it again."""
        resolver.validate(query)
        await self.cache.delete(resolver.cache_key(query))
        resolution = await resolver.resolve(query)
        return resolution.value

    async def _announce(self, disaster_id: str, event: str, data: dict, items: list) -> RefreshResponse:
        notified = False
        if items:
            notified = await self.relay.emit(event, disaster_room(disaster_id), data)

        return RefreshResponse(
            disaster_id=disaster_id,
            total=len(items),
            notified=notified,
            data=data
        )

    async def _check_dependencies(self):
        """Check enrichment service dependencies."""
        dependencies = {}

        try:
            dependencies["cache"] = "ok" if await self.cache.health_check() else "error"
        except Exception:
            dependencies["cache"] = "error"

        dependencies["relay"] = "ok" if await self.relay.health_check() else "unavailable"

        for name, state in self.breakers.get_all_states().items():
            dependencies[f"circuit_{name}"] = state["state"]

        return dependencies

    async def start(self):
        """Start enrichment service components."""
        await self.cache.start()
        await self.sweeper.start()
        self.logger.info("Enrichment service started", cache_backend=self.cache.backend)

    async def stop(self):
        """Stop enrichment service components."""
        await self.sweeper.stop()
        await self.cache.stop()
        self.logger.info("Enrichment service stopped")


def create_app():
    """Create enrichment service application."""
    service = EnrichmentService()
    return service.app


if __name__ == "__main__":
    service = EnrichmentService()
    service.run()
