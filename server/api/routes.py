# server/api/routes.py
"""API routes for the game server."""

from dataclasses import asdict

from fastapi import APIRouter
from services.match_controller import MatchController
from services.websocket_service import WebSocketService
from config.settings import get_game_config


class GameAPI:
    """API routes for game-related endpoints."""

    def __init__(self, match: MatchController, websocket_service: WebSocketService):
        self.match = match
        self.websocket_service = websocket_service
        self.router = APIRouter()
        self._setup_routes()

    def _setup_routes(self):
        """Set up all API routes."""

        @self.router.get("/")
        async def root():
            """Root endpoint."""
            return {"message": "CodeBattle Royale Server Running"}

        @self.router.get("/api/game/config")
        async def get_game_config_endpoint():
            """Get arena size, zone and combat tuning."""
            return get_game_config()

        @self.router.get("/api/game/state")
        async def get_state():
            """Get a snapshot of the current match."""
            return self.match.snapshot()

        @self.router.get("/api/game/highscore")
        async def get_high_score():
            """Get the best recorded result, if any."""
            high_score = self.match.high_score
            return {"highScore": asdict(high_score) if high_score else None}

        @self.router.post("/api/game/restart")
        async def restart():
            """Abandon the current match and open a new lobby."""
            await self.match.start_lobby()
            await self.websocket_service.broadcast_frame()
            return self.match.snapshot()
