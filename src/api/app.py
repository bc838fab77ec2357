"""
FastAPI application: the session socket plus the thin save/load endpoints.

Routes only translate between HTTP/WebSocket and the service layer / session hub; no game rules live here.
"""

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Optional

from fastapi import Depends, FastAPI, Request, WebSocket
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from src.api.models import SavePayload, SaveResponse, StatusResponse
from src.core.config import Settings, get_settings
from src.core.exceptions import GameError, RepositoryError
from src.core.logging_config import configure_logging
from src.db.database import SessionLocal, get_db, init_db
from src.db.sql_repository import SQLSaveRepository
from src.services.save_service import SaveService
from src.session.hub import SessionHub
from src.session.registry import PlayerRegistry

logger = logging.getLogger(__name__)


def get_save_service(db: Session = Depends(get_db)) -> SaveService:
    return SaveService(SQLSaveRepository(db))


def _decode_frame(received: dict) -> object:
    """JSON text frames only. Binary or unparsable frames come back as `None` for the hub to reject."""
    text = received.get("text")
    if text is None:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return None


def create_app(
    settings: Optional[Settings] = None,
    session_factory: Callable[[], Session] = SessionLocal,
    hub: Optional[SessionHub] = None,
) -> FastAPI:
    settings = settings or get_settings()

    def store_save_blocking(player_name: str, state: dict) -> None:
        with session_factory() as db:
            SaveService(SQLSaveRepository(db)).store(player_name, state)

    async def save_from_hub(player_name: str, state: dict) -> None:
        await run_in_threadpool(store_save_blocking, player_name, state)

    hub = hub or SessionHub(
        registry=PlayerRegistry(max_name_length=settings.max_name_length),
        reconnect_grace_seconds=settings.reconnect_grace_seconds,
        save_handler=save_from_hub,
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        configure_logging(settings.log_level)
        init_db()
        logger.info("GridOps server ready (%s)", settings.environment)
        yield

    app = FastAPI(title="GridOps", lifespan=lifespan)
    app.state.hub = hub
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(GameError)
    async def game_error_handler(_: Request, exc: GameError) -> JSONResponse:
        status_code = 503 if isinstance(exc, RepositoryError) else 400
        return JSONResponse(status_code=status_code, content={"error": str(exc), "code": exc.code})

    # -- save endpoints ---
    @app.get("/api/saves/{player_name}")
    def load_save(
        player_name: str, service: SaveService = Depends(get_save_service)
    ) -> Optional[dict[str, Any]]:
        return service.load(player_name)

    @app.post("/api/saves/{player_name}", response_model=SaveResponse)
    def store_save(
        player_name: str,
        payload: SavePayload,
        service: SaveService = Depends(get_save_service),
    ) -> SaveResponse:
        service.store(player_name, payload)
        return SaveResponse(success=True)

    @app.delete("/api/saves/{player_name}", response_model=SaveResponse)
    def delete_save(
        player_name: str, service: SaveService = Depends(get_save_service)
    ) -> SaveResponse:
        service.delete(player_name)
        return SaveResponse(success=True)

    @app.get("/api/status", response_model=StatusResponse)
    def status() -> StatusResponse:
        return StatusResponse(
            mode=settings.environment,
            active_players=hub.active_players,
            games=hub.active_games,
        )

    # -- session socket ---
    @app.websocket("/ws")
    async def ws_endpoint(ws: WebSocket) -> None:
        await ws.accept()
        conn_id = hub.connect(ws)
        try:
            while True:
                received = await ws.receive()
                if received["type"] == "websocket.disconnect":
                    break
                await hub.handle(conn_id, _decode_frame(received))
        finally:
            await hub.disconnect(conn_id)

    return app


app = create_app()
