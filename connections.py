import asyncio
import json
from typing import Dict

from fastapi import WebSocket

from backend import RedisBackend
from services.lifecycle import DESTROY_EVENT
from logging_config import get_logger

logger = get_logger(__name__)


class ConnectionHub:
    """Local WebSocket subscribers of each room, fed by one Redis listener per room.

    This is intentionally in-memory per instance. Redis pub/sub distributes events
    across all instances, and each instance forwards them to its own sockets.
    Every connection owns a queue; ``None`` on the queue means the room is gone.
    """

    def __init__(self, backend: RedisBackend):
        self.backend = backend
        # {room_id: {connection_id: queue of event payloads}}
        self.room_connections: Dict[str, Dict[str, asyncio.Queue]] = {}
        # {room_id: listener task}
        self.room_pubsub_tasks: Dict[str, asyncio.Task] = {}

    async def add(self, room_id: str, connection_id: str) -> asyncio.Queue:
        """Register a connection. The room channel is subscribed before this returns."""
        queue: asyncio.Queue = asyncio.Queue()
        self.room_connections.setdefault(room_id, {})[connection_id] = queue
        logger.debug(f"Added connection {connection_id} to room {room_id} (local connections: {len(self.room_connections[room_id])})")

        if room_id not in self.room_pubsub_tasks or self.room_pubsub_tasks[room_id].done():
            pubsub = self.backend.subscribe_to_room(room_id)
            self.room_pubsub_tasks[room_id] = asyncio.create_task(self.listen_to_redis_channel(room_id, pubsub))
            logger.debug(f"Started Redis pub/sub listener for room: {room_id}")
        return queue

    async def remove(self, room_id: str, connection_id: str):
        connections = self.room_connections.get(room_id)
        if connections is not None:
            connections.pop(connection_id, None)
            if not connections:
                del self.room_connections[room_id]
                logger.info(f"No more local connections in room {room_id}, cleaning up")
                await self._stop_listener(room_id)

    async def _stop_listener(self, room_id: str):
        task = self.room_pubsub_tasks.pop(room_id, None)
        if task is None or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.debug(f"Cancelled pub/sub task for room {room_id}")

    def broadcast(self, room_id: str, payload: str):
        connections = list(self.room_connections.get(room_id, {}).items())
        logger.debug(f"Queueing event for {len(connections)} local connections in room {room_id}")
        for _conn_id, queue in connections:
            queue.put_nowait(payload)

    def close_room(self, room_id: str):
        connections = self.room_connections.pop(room_id, {})
        for queue in connections.values():
            queue.put_nowait(None)
        logger.info(f"Closing {len(connections)} local connections of destroyed room {room_id}")

    async def pump(self, connection_id: str, queue: asyncio.Queue, websocket: WebSocket):
        """Send queued events to one socket until the room is destroyed."""
        try:
            while True:
                payload = await queue.get()
                if payload is None:
                    await websocket.close(code=1000, reason="Room destroyed")
                    return
                await websocket.send_text(payload)
        except Exception as e:
            logger.warning(f"Error sending to connection {connection_id}: {e}")

    async def listen_to_redis_channel(self, room_id: str, pubsub):
        """Forward events from the room's Redis channel to local connections."""
        logger.info(f"Starting Redis pub/sub listener for room: {room_id}")
        loop = asyncio.get_running_loop()
        try:
            while self.room_connections.get(room_id):
                # Blocking get_message() runs in the thread pool with a timeout
                message = await loop.run_in_executor(
                    None, lambda: pubsub.get_message(timeout=1.0, ignore_subscribe_messages=True)
                )
                if message is None or message.get("type") != "message":
                    continue

                try:
                    event = json.loads(message["data"])
                except json.JSONDecodeError as e:
                    logger.error(f"Error parsing event from Redis for room {room_id}: {e}")
                    continue

                self.broadcast(room_id, message["data"])
                if event.get("event") == DESTROY_EVENT:
                    self.close_room(room_id)
                    break
        except asyncio.CancelledError:
            logger.info(f"Redis listener task cancelled for room: {room_id}")
            raise
        except Exception as e:
            logger.error(f"Error in Redis listener for room {room_id}: {e}", exc_info=True)
        finally:
            try:
                pubsub.close()
            except Exception as e:
                logger.error(f"Error closing pub/sub for room {room_id}: {e}")
            if self.room_pubsub_tasks.get(room_id) is asyncio.current_task():
                del self.room_pubsub_tasks[room_id]

    async def shutdown(self):
        for room_id in list(self.room_pubsub_tasks):
            await self._stop_listener(room_id)
