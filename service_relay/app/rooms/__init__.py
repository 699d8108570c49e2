"""
Room membership for the Realtime Relay.
"""
