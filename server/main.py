"""FastAPI WebSocket server for the UNO card game."""

import logging
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from config import config
from directory import SessionDirectory
from handlers import ConnectionContext, dispatch
from logging_config import set_log_context, setup_logging
from routers.health import router as health_router, set_health_dependencies
from stores.session_store import SessionStore, create_session_store

# Configure logging based on environment
setup_logging(
    level=config.LOG_LEVEL,
    environment=config.ENVIRONMENT,
)
logger = logging.getLogger(__name__)


# Session store (initialized in lifespan)
_session_store: Optional[SessionStore] = None

directory = SessionDirectory(timing=config.timing)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for async service initialization."""
    global _session_store

    try:
        _session_store = await create_session_store(config.REDIS_URL)
    except Exception as e:
        logger.error(f"Failed to initialize session store: {e}")
        raise
    directory.store = _session_store

    restored = await directory.restore_all()
    if restored:
        logger.info(f"Restored {restored} session(s) from the store")

    directory.start_sweeper()
    set_health_dependencies(session_store=_session_store, directory=directory)

    logger.info(f"UNO server started (environment={config.ENVIRONMENT})")

    yield

    logger.info("Shutdown initiated...")
    await directory.close()
    await _session_store.close()
    logger.info("Shutdown complete")


app = FastAPI(
    title="UNO Game Server",
    description="Authoritative multiplayer UNO over WebSockets",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(health_router)


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    await websocket.accept()

    connection_id = str(uuid.uuid4())
    player_id = websocket.query_params.get("player_id") or connection_id
    set_log_context(connection_id=connection_id, player_id=player_id)
    logger.debug(f"WebSocket connected as {player_id}")

    ctx = ConnectionContext(
        websocket=websocket,
        connection_id=connection_id,
        player_id=player_id,
    )

    # Shared dependencies passed to every handler
    handler_deps = dict(directory=directory)

    try:
        while True:
            data = await websocket.receive_json()
            await dispatch(data, ctx, **handler_deps)
    except WebSocketDisconnect:
        logger.debug(f"WebSocket disconnected: {player_id}")
        if ctx.current_session is not None:
            ctx.current_session.detach(player_id, websocket)


def run():
    """Run the server using uvicorn."""
    import uvicorn

    logger.info(f"Starting UNO server on {config.HOST}:{config.PORT}")
    logger.info(f"Debug mode: {config.DEBUG}")

    uvicorn.run(
        "main:app",
        host=config.HOST,
        port=config.PORT,
        reload=config.DEBUG,
        log_level=config.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
