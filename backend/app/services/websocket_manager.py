"""
Lucid WebSocket Manager
Fans assessment and status messages out to connected dashboard clients.
"""

import asyncio
import logging
from typing import Any, Dict

from fastapi import WebSocket

logger = logging.getLogger("lucid.websocket")


class ConnectionManager:
    """
    Manages WebSocket connections per channel.

    publish() is synchronous so it can be called from inside the monitor
    service's recomputation; each connection drains its own bounded queue.
    """

    def __init__(self, max_queue: int = 100):
        self.max_queue = max_queue
        self.active_connections: Dict[str, Dict[WebSocket, asyncio.Queue]] = {
            "monitor": {},
        }

    async def connect(self, websocket: WebSocket, channel: str = "monitor") -> asyncio.Queue:
        await websocket.accept()
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.max_queue)
        self.active_connections.setdefault(channel, {})[websocket] = queue
        logger.info(f"Client connected to channel: {channel} (total: {len(self.active_connections[channel])})")
        return queue

    def disconnect(self, websocket: WebSocket, channel: str = "monitor"):
        if channel in self.active_connections:
            self.active_connections[channel].pop(websocket, None)
        logger.info(f"Client disconnected from channel: {channel}")

    def publish(self, message: Dict[str, Any], channel: str = "monitor") -> None:
        """Queue a message for every client on a channel, dropping the oldest when full."""
        for queue in self.active_connections.get(channel, {}).values():
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(message)

    @property
    def total_connections(self) -> int:
        return sum(len(conns) for conns in self.active_connections.values())


# Global instance
ws_manager = ConnectionManager()
