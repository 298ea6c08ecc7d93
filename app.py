from fastapi import FastAPI, Request, WebSocket
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from contextlib import asynccontextmanager
from typing import Optional
import os

from backend import build_backend
from censor import load_prohibited_words
from chat import ChatCoordinator
from connections import Connection
from constants import OFFENSIVE_WORDS_FILE, STATIC_DIR
from errors import ChatError, StoreError
from logging_config import get_logger, setup_logging
from routers.rooms import rooms_router
from schemas.frames import parse_frame

# Setup logging
log_level = os.getenv("LOG_LEVEL", "INFO")
log_file = os.getenv("LOG_FILE", None)
setup_logging(log_level=log_level, log_file=log_file)
logger = get_logger(__name__)


async def serve_connection(chat: ChatCoordinator, websocket: WebSocket):
    """Run one client connection until it disconnects or gets closed by moderation."""
    await websocket.accept()
    connection = Connection(websocket)
    chat.connect(connection)
    logger.info(f"New client connected: {connection.connection_id}")

    try:
        while not connection.closed:
            event = await websocket.receive()
            if event["type"] == "websocket.disconnect":
                logger.info(f"Client disconnected: {connection.connection_id}")
                break

            data = event.get("text")
            if data is None and event.get("bytes") is not None:
                data = event["bytes"].decode("utf-8", errors="replace")

            try:
                frame = parse_frame(data or "")
                logger.debug(f"Received {frame.type} frame from connection {connection.connection_id}")
                await chat.handle_frame(connection, frame)
            except ChatError as e:
                if not isinstance(e, StoreError):
                    logger.warning(f"Rejected request from connection {connection.connection_id}: {e}")
                await chat.send_to(connection, e.to_payload())
                if e.close_connection:
                    await chat.disconnect(connection)
            except Exception as e:
                logger.error(f"Error handling frame from connection {connection.connection_id}: {e}", exc_info=True)
                await chat.send_to(connection, StoreError().to_payload())
    finally:
        chat.directory.remove(connection)
        await connection.close()


def create_app(chat: Optional[ChatCoordinator] = None, static_dir: Optional[str] = STATIC_DIR) -> FastAPI:
    if chat is None:
        chat = ChatCoordinator(build_backend(), prohibited=load_prohibited_words(OFFENSIVE_WORDS_FILE))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await chat.run_store(chat.backend.ping)
        logger.info("Chat backend is reachable")
        yield

    app = FastAPI(title="Chat", lifespan=lifespan)
    app.state.chat = chat

    # Configure CORS to allow all origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ChatError)
    async def chat_error_handler(request: Request, exc: ChatError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        logger.debug(f"Invalid request body for {request.url.path}: {exc.errors()}")
        return JSONResponse(status_code=400, content={"error": "Invalid input", "details": "Malformed request body"})

    app.include_router(rooms_router)

    @app.get("/health")
    async def health():
        try:
            await chat.run_store(chat.backend.ping)
        except StoreError:
            return JSONResponse(status_code=503, content={"status": "degraded"})
        return {"status": "healthy"}

    @app.websocket("/")
    async def websocket_root(websocket: WebSocket):
        await serve_connection(chat, websocket)

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        await serve_connection(chat, websocket)

    # Mounted last so API routes win
    if static_dir and os.path.isdir(static_dir):
        app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")
        logger.info(f"Serving static files from {static_dir}")

    logger.info("FastAPI application initialized")
    return app


app = create_app()
