"""
WebSocket protocol handling for the Realtime Relay.
"""
