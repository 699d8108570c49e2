"""
Enrichment Service package for the Relief Intelligence Layer.

Augments the disaster record store with volatile, externally sourced
intelligence. Every lookup goes through a cache-aside resolver so that slow,
rate-limited or unconfigured providers never block or crash the caller.

- app.main: API surface for geocoding, verification, analysis and feeds.
- app.cache: CacheStore contract, backends, and the cleanup sweeper.
- app.providers: HTTP and SDK clients for each external provider.
- app.resolvers: Resolver driver and the per-lookup resolvers.
- app.realtime: Fire-and-forget client for the realtime relay.
"""
