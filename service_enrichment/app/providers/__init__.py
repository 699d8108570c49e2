"""
External provider clients for the Enrichment Service.

Each client raises UpstreamError on any failure; the resolvers decide what
to fall back to.
"""
