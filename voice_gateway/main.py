"""
FastAPI server for the voice gateway.

This module initializes the FastAPI application that accepts telephony media
streams on the /stream websocket path and relays each one to an OpenAI Realtime
API session. It also serves a plain liveness endpoint and a JSON health
endpoint.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

import dotenv
from fastapi import FastAPI, WebSocket
from fastapi.responses import PlainTextResponse

from voice_gateway.config.constants import LOGGER_NAME, STREAM_PATH_PREFIX
from voice_gateway.config.logging_config import configure_logging
from voice_gateway.config.settings import get_settings
from voice_gateway.websocket_manager import StreamConnectionManager

# Load environment variables from .env file if it exists
env_path = Path(".") / ".env"
if env_path.exists():
    dotenv.load_dotenv(env_path)

# run.py may already have configured logging with a command-line level
logger = logging.getLogger(LOGGER_NAME)
if not logger.handlers:
    logger = configure_logging()
settings = get_settings()

connection_manager = StreamConnectionManager(settings)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if not settings.api_key_configured:
        logger.warning("OPENAI_API_KEY not set; calls will fail at the upstream connect step")
    yield
    # Let in-flight outcome reports finish before the process exits
    await connection_manager.notifier.drain()


app = FastAPI(
    title="Voice Gateway",
    description="Relay between telephony media streams and the OpenAI Realtime API",
    version="1.0.0",
    lifespan=lifespan,
)


@app.get("/", response_class=PlainTextResponse)
async def root():
    """Liveness check returning a static confirmation."""
    return "Voice Gateway is live"


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring system status.

    Returns:
        dict: Status information including whether the API key is configured
        and how many calls are currently being relayed.
    """
    return {
        "status": "healthy",
        "openai_api_key_configured": settings.api_key_configured,
        "active_calls": connection_manager.active_calls,
    }


@app.websocket(STREAM_PATH_PREFIX)
async def stream_endpoint(websocket: WebSocket):
    """Telephony media stream endpoint; ?leadId=... carries the correlation token."""
    await connection_manager.handle_websocket(websocket)


@app.websocket(STREAM_PATH_PREFIX + "/{suffix:path}")
async def stream_endpoint_with_suffix(websocket: WebSocket, suffix: str):
    await connection_manager.handle_websocket(websocket)


if __name__ == "__main__":
    import os

    import uvicorn

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "3000"))
    logger.info(f"Starting server on http://{host}:{port}")
    uvicorn.run(
        app,
        host=host,
        port=port,
        ws_ping_interval=5,
        ws_ping_timeout=20,
        ws_max_size=16777216,  # 16MB - large enough for audio chunks
        http="h11",
    )
