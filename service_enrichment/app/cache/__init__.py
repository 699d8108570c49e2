"""
Cache package for the Enrichment Service.

Provides the cache-aside store shared by every resolver, with in-memory,
PostgreSQL and Redis backends, and the sweeper that purges expired entries.
"""
