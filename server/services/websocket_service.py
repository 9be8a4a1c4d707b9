# server/services/websocket_service.py
"""WebSocket connection management and message handling."""

import logging
from typing import Set

from fastapi import WebSocket, WebSocketDisconnect

from .match_controller import MatchController
from config.settings import get_game_config

logger = logging.getLogger(__name__)


class WebSocketService:
    """Feeds client keystrokes into the match and pushes frames back out.

    Every connected client sees the same match. Any of them may type or
    restart; the rest act as spectators.
    """

    def __init__(self, match: MatchController):
        self.match = match
        self.connected_clients: Set[WebSocket] = set()
        self.match.frame_listener = self.broadcast_frame

    async def handle_connection(self, websocket: WebSocket):
        """Handle a new WebSocket connection."""
        logger.info(f"WebSocket connection attempt from {websocket.client}")
        await websocket.accept()
        logger.info(f"WebSocket connection accepted for {websocket.client}")

        self.connected_clients.add(websocket)

        try:
            await self._send_initial_state(websocket)
            await self._handle_client_messages(websocket)

        except WebSocketDisconnect:
            self._handle_disconnect(websocket)
        except Exception as e:
            logger.warning(f"WebSocket error for {websocket.client}: {e}")
            self._handle_disconnect(websocket)

    async def _send_initial_state(self, websocket: WebSocket):
        """Send configuration and the current world to a new client."""
        initial_data = {
            "type": "init",
            "config": get_game_config(),
            "state": self.match.snapshot(),
        }
        await websocket.send_json(initial_data)

    async def _handle_client_messages(self, websocket: WebSocket):
        """Handle incoming messages from a client."""
        while True:
            data = await websocket.receive_json()
            if not isinstance(data, dict):
                continue
            if await self._process_message(data):
                await self.broadcast_frame()

    async def _process_message(self, data: dict) -> bool:
        """Process a single message from a client.

        Returns whether the message was one the server understands.
        """
        message_type = data.get("type")

        if message_type == "input":
            value = data.get("value")
            if not isinstance(value, str):
                return False
            self.match.handle_input(value)
        elif message_type == "tab":
            self.match.handle_tab()
        elif message_type == "backspace":
            self.match.handle_backspace()
        elif message_type == "restart":
            await self.match.start_lobby()
        else:
            return False
        return True

    def _handle_disconnect(self, websocket: WebSocket):
        """Handle client disconnection."""
        logger.info(f"Client {websocket.client} disconnected")
        self.connected_clients.discard(websocket)

    async def broadcast_frame(self):
        """Push the current world and any pending events to every client."""
        events = self.match.drain_events()
        if not self.connected_clients:
            return

        await self._broadcast_message({"type": "frame", "state": self.match.snapshot()})
        if events:
            await self._broadcast_message({"type": "events", "events": events})

    async def _broadcast_message(self, message: dict):
        """Broadcast a message to all connected clients."""
        disconnected = set()

        for client in list(self.connected_clients):
            try:
                await client.send_json(message)
            except Exception:
                disconnected.add(client)

        # Clean up disconnected clients
        self.connected_clients -= disconnected
