"""
Realtime notification sender for the Enrichment Service.
"""
