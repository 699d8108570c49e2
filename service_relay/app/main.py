"""
Realtime Relay for the Relief Intelligence Layer.

Holds room membership for connected clients in memory and fans out events
posted to ``/emit`` to the members of the addressed room.
"""

import hmac
from typing import Any, Dict, Optional

from fastapi import Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from shared.base_service import BaseService
from shared.errors import ReliefLayerException

from .rooms.manager import RoomManager, frame
from .ws.handlers import RelayMessageHandler, error_frame


class RelayService(BaseService):
    """Realtime relay implementation."""

    def __init__(self, **config_overrides):
        super().__init__("relay", 3001, **config_overrides)

        self.rooms = RoomManager(
            max_connections=self.config.max_ws_connections,
            metrics=self.metrics
        )
        self.ws_handler = RelayMessageHandler(self.rooms)

        self._setup_relay_routes()

    def _setup_relay_routes(self):
        """Set up relay-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "relay",
                "message": "Relief Intelligence Layer - Realtime Relay",
                "version": "1.0.0",
                "websocket": "/ws",
                "online_users": self.rooms.online_count
            }

        @self.app.get("/stats")
        async def stats():
            """Connection and room statistics."""
            return self.rooms.get_stats()

        @self.app.post("/emit")
        async def emit(request: Request):
            """Fan an event out to every member of a room."""
            if not self._authorized(request):
                self.logger.warning("Rejected emit with bad token")
                return JSONResponse(status_code=401, content={"success": False, "error": "Invalid relay token"})

            try:
                body = await request.json()
            except ValueError:
                return self._bad_request("Body must be valid JSON")

            if not isinstance(body, dict):
                return self._bad_request("Body must be a JSON object")

            event = body.get("event")
            room = body.get("room")
            if not isinstance(event, str) or not event:
                return self._bad_request("'event' must be a non-empty string")
            if not isinstance(room, str) or not room:
                return self._bad_request("'room' must be a non-empty string")

            self.metrics.increment_counter("events_ingested_total", event=event)
            delivered = await self.rooms.broadcast_to_room(room, frame(event, body.get("data")))
            self.metrics.increment_counter("messages_delivered_total", amount=delivered, event=event)

            self.logger.info("Event relayed", event_name=event, room=room, delivered=delivered)
            return {"success": True, "delivered": delivered}

        @self.app.websocket("/ws")
        async def websocket_endpoint(websocket: WebSocket):
            """Realtime client endpoint."""
            await websocket.accept()
            connection_id: Optional[str] = None

            try:
                connection_id = await self.rooms.connect(websocket)

                while True:
                    try:
                        message_text = await websocket.receive_text()
                    except WebSocketDisconnect:
                        break

                    response = await self.ws_handler.handle_message(connection_id, message_text)
                    if response and not await self.rooms.send(connection_id, response):
                        break

            except ReliefLayerException as e:
                self.logger.warning("Connection refused", code=e.code, message=e.message)
                await websocket.send_json(error_frame(e.code, e.message))
                await websocket.close()
            except Exception as e:
                self.logger.error("WebSocket connection error", error=str(e))
            finally:
                if connection_id:
                    await self.rooms.disconnect(connection_id)

    def _authorized(self, request: Request) -> bool:
        token = self.config.relay_emit_token
        if not token:
            return True
        supplied = request.headers.get("X-Relay-Token", "")
        return hmac.compare_digest(supplied.encode(), token.encode())

    def _bad_request(self, error: str) -> JSONResponse:
        self.logger.warning("Rejected malformed emit", error=error)
        return JSONResponse(status_code=400, content={"success": False, "error": error})

    async def _check_dependencies(self) -> Dict[str, Any]:
        return {"online_users": str(self.rooms.online_count)}

    async def start(self):
        """Start relay components."""
        self.logger.info("Realtime relay started", max_connections=self.config.max_ws_connections)

    async def stop(self):
        """Stop relay components."""
        await self.rooms.close_all()
        self.logger.info("Realtime relay stopped")


def create_app():
    """Create relay service application."""
    service = RelayService()
    return service.app


if __name__ == "__main__":
    service = RelayService()
    service.run()
