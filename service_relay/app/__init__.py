"""
Realtime Relay package.

Standalone process that fans events out to connected clients grouped in
rooms. State lives in memory only and is rebuilt as clients reconnect.

- app.main: FastAPI app with the /ws endpoint and /emit ingestion
- app.rooms: Connection and room membership tracking
- app.ws: Client frame parsing and routing
"""
