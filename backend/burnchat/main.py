"""burnchat backend application.

Ephemeral, anonymous group chat: clients join a room by code, exchange
short-lived messages that burn once everyone present has seen them, and see
who is online or typing. Everything lives in process memory; after a restart
clients simply rejoin.

Modules:
    - chat.registry: room code -> Room mapping, idle reap
    - chat.room / presence / messages: the per-room state machine
    - chat.reaper: periodic TTL/presence/expiry sweep and grace timers
    - chat.gateway: WebSocket push of room events
    - chat.router: HTTP (poll) and WebSocket (push) transport
"""
import logging
import time
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from burnchat.chat.errors import ChatError
from burnchat.chat.gateway import RoomGateway
from burnchat.chat.reaper import ExpiryReaper
from burnchat.chat.registry import RoomRegistry
from burnchat.chat.router import router as chat_router
from burnchat.chat.service import ChatService
from burnchat.config import AppConfig, get_config

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Every HTTP request and WebSocket frame is logged by uvicorn otherwise;
# polling clients make that unreadable.
for _noisy in ("uvicorn.access", "httpx", "httpcore"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


async def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
    """Map a rejected room operation onto its HTTP status."""
    logger.info("[API] %s %s rejected: %s", request.method, request.url.path, exc.code)
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


def create_app(
    config: Optional[AppConfig] = None,
    clock: Callable[[], float] = time.time,
) -> FastAPI:
    """Build the application with its own registry, gateway and reaper.

    Args:
        config: Configuration; loaded from burnchat.settings.yaml if omitted.
        clock: Time source for every room operation.
    """
    config = config or get_config()

    gateway = RoomGateway()
    registry = RoomRegistry(config.rooms, config.presence, config.messages)
    reaper = ExpiryReaper(
        registry,
        gateway,
        config.reaper,
        clock=clock,
        on_room_reaped=gateway.drop_room,
    )
    service = ChatService(registry, gateway, config, clock=clock, reaper=reaper)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager for startup/shutdown events."""
        # Apply configured log level to root logger so that
        # `logging.level: "debug"` in burnchat.settings.yaml activates DEBUG output.
        configured_level = getattr(logging, config.logging.level.upper(), None)
        if configured_level is not None:
            logging.getLogger().setLevel(configured_level)
            logger.info("Root logger level set to %s", config.logging.level.upper())

        if config.reaper.enabled:
            await reaper.start()
        else:
            logger.info("Expiry reaper disabled in config")

        yield  # Application runs here

        await reaper.stop()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="burnchat API",
        description="Ephemeral anonymous group chat with burn-after-reading messages",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.registry = registry
    app.state.gateway = gateway
    app.state.reaper = reaper
    app.state.chat_service = service
    app.state.started_at = clock()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.allowed_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.add_exception_handler(ChatError, chat_error_handler)
    app.include_router(chat_router)

    @app.get("/health")
    @app.get("/api/health")
    async def health() -> dict:
        """Health check endpoint.

        Returns:
            dict: Status, uptime and in-memory room/user counts.
        """
        now = clock()
        return {
            "status": "healthy",
            "timestamp": now,
            "uptime": now - app.state.started_at,
            "reaper": reaper.running,
            **service.stats(),
        }

    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    config = get_config()
    uvicorn.run(
        "burnchat.main:app",
        host=config.server.host,
        port=config.server.port,
        log_level=config.logging.level.lower(),
    )
