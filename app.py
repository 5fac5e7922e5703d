import asyncio
from contextlib import asynccontextmanager
from typing import Optional
import uuid

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend import RedisBackend, connect_redis_backend
from connections import ConnectionHub
from constants import AUTH_COOKIE_NAME, AUTH_SECRET
from errors import RoomNotFound, Unauthorized
from routers.messages import messages_router
from routers.rooms import rooms_router
from services.auth import AuthorizationGate, CredentialIssuer
from services.lifecycle import LifecycleManager
from services.message_log import MessageLog
from services.room_registry import RoomRegistry
from logging_config import get_logger

logger = get_logger(__name__)


def init_services(app: FastAPI, backend: RedisBackend, issuer: CredentialIssuer):
    """Build the process-wide service graph once and hang it on ``app.state``."""
    registry = RoomRegistry(backend)
    log = MessageLog(backend, registry)
    app.state.backend = backend
    app.state.gate = AuthorizationGate(issuer)
    app.state.lifecycle = LifecycleManager(backend, registry, log, issuer)
    app.state.hub = ConnectionHub(backend)


def create_app(backend: Optional[RedisBackend] = None, issuer: Optional[CredentialIssuer] = None) -> FastAPI:
    issuer = issuer or CredentialIssuer(AUTH_SECRET)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_backend = backend is None
        init_services(app, backend or connect_redis_backend(), issuer)
        logger.info("Room services initialized")
        try:
            yield
        finally:
            await app.state.hub.shutdown()
            if owns_backend:
                app.state.backend.close()

    app = FastAPI(title="BurnChat", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(rooms_router)
    app.include_router(messages_router)

    @app.exception_handler(RoomNotFound)
    async def room_not_found_handler(request: Request, exc: RoomNotFound):
        return JSONResponse(status_code=404, content={"detail": "room_not_found"})

    @app.exception_handler(Unauthorized)
    async def unauthorized_handler(request: Request, exc: Unauthorized):
        return JSONResponse(status_code=401, content={"detail": "unauthorized"})

    @app.get("/health")
    async def health(request: Request):
        return {"status": "ok", "redis": request.app.state.backend.ping()}

    @app.websocket("/rooms/{room_id}/ws")
    async def websocket_endpoint(room_id: str, websocket: WebSocket, token: Optional[str] = None):
        """Stream the room's ``message`` and ``destroy`` events to the client.

        Query parameters:
        - token: room credential from /join (falls back to the auth cookie)
        """
        state = websocket.app.state
        credential = token or websocket.cookies.get(AUTH_COOKIE_NAME)
        try:
            state.gate.authorize(room_id, credential)
        except Unauthorized:
            logger.warning(f"WebSocket connection rejected: unauthorized for room {room_id}")
            await websocket.close(code=1008, reason="Unauthorized")
            return

        if not state.lifecycle.registry.exists(room_id):
            logger.info(f"WebSocket connection rejected: Room {room_id} not found")
            await websocket.close(code=1008, reason="Room not found")
            return

        connection_id = str(uuid.uuid4())
        # Subscribed before accept; events from here on are queued for this socket
        queue = await state.hub.add(room_id, connection_id)
        sender = None
        try:
            await websocket.accept()
            logger.info(f"Connection {connection_id} subscribed to room {room_id}")
            sender = asyncio.create_task(state.hub.pump(connection_id, queue, websocket))

            # Clients only listen; anything they send is ignored
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            logger.info(f"WebSocket disconnected for connection {connection_id} in room {room_id}")
        finally:
            if sender is not None:
                sender.cancel()
            await state.hub.remove(room_id, connection_id)

    logger.info("FastAPI application initialized")
    return app


app = create_app()
