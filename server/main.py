# server/main.py
"""FastAPI application entry point for the CodeBattle Royale server."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from api.routes import GameAPI
from config.settings import CORS_ORIGINS, HOST, PORT
from services.match_controller import MatchController
from services.score_store import HighScoreStore
from services.snippet_service import SnippetService
from services.websocket_service import WebSocketService

logger = logging.getLogger(__name__)


def create_app(match: Optional[MatchController] = None) -> FastAPI:
    """Build the app around a match controller.

    A controller backed by GitHub snippets and the on-disk best score is
    created when none is given.
    """
    snippet_service = None
    if match is None:
        snippet_service = SnippetService()
        match = MatchController(snippet_service, HighScoreStore())

    websocket_service = WebSocketService(match)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await match.start_lobby()
        yield
        match.shutdown()
        if snippet_service is not None:
            await snippet_service.aclose()

    app = FastAPI(title="CodeBattle Royale", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(GameAPI(match, websocket_service).router)

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        await websocket_service.handle_connection(websocket)

    app.state.match = match
    app.state.websocket_service = websocket_service
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    uvicorn.run(app, host=HOST, port=PORT)
