"""Real-time WebSocket hub delivering notifications to connected channels."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from starlette.websockets import WebSocket, WebSocketState

import game_config as config

log = logging.getLogger(__name__)

_CLOSE = object()


class SessionHub:
    """Registry of open channels, each with its own outbound queue.

    ``send`` only enqueues, so callers on the event loop never wait on a
    remote peer. One writer task per channel drains its queue in order,
    which keeps per-observer delivery in the order messages were issued.
    """

    def __init__(self, queue_size: int | None = None) -> None:
        self._queue_size = config.OUTBOUND_QUEUE_SIZE if queue_size is None else queue_size
        self._connections: dict[str, WebSocket] = {}
        self._outboxes: dict[str, asyncio.Queue[Any]] = {}
        self._writers: dict[str, asyncio.Task[None]] = {}

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def connect(self, channel_id: str, ws: WebSocket) -> None:
        queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=self._queue_size)
        self._connections[channel_id] = ws
        self._outboxes[channel_id] = queue
        self._writers[channel_id] = asyncio.get_running_loop().create_task(
            self._drain(channel_id, ws, queue)
        )

    async def disconnect(self, channel_id: str) -> None:
        self._connections.pop(channel_id, None)
        self._outboxes.pop(channel_id, None)
        writer = self._writers.pop(channel_id, None)
        if writer is not None and not writer.done():
            writer.cancel()
            await asyncio.wait({writer})

    def send(self, channel_id: str, message: dict[str, Any]) -> bool:
        queue = self._outboxes.get(channel_id)
        if queue is None:
            return False
        try:
            queue.put_nowait(message)
        except asyncio.QueueFull:
            log.warning("Outbound queue full for %s, dropping %s", channel_id, message.get("event"))
            return False
        return True

    def close(self, channel_id: str) -> None:
        """Close a channel once everything already queued for it is sent."""
        queue = self._outboxes.get(channel_id)
        if queue is None:
            return
        try:
            queue.put_nowait(_CLOSE)
        except asyncio.QueueFull:
            writer = self._writers.get(channel_id)
            if writer is not None:
                writer.cancel()
            ws = self._connections.get(channel_id)
            if ws is not None:
                asyncio.get_running_loop().create_task(self._safe_close(ws))

    async def close_all(self) -> None:
        for channel_id in list(self._connections):
            ws = self._connections.get(channel_id)
            await self.disconnect(channel_id)
            if ws is not None:
                await self._safe_close(ws)

    async def _drain(self, channel_id: str, ws: WebSocket, queue: asyncio.Queue[Any]) -> None:
        try:
            while True:
                message = await queue.get()
                if message is _CLOSE:
                    await self._safe_close(ws)
                    return
                if ws.client_state != WebSocketState.CONNECTED:
                    log.debug("Channel %s no longer connected, stopping writer", channel_id)
                    return
                try:
                    await ws.send_json(message)
                except Exception:
                    log.debug("Failed to send to channel %s, stopping writer", channel_id)
                    return
        finally:
            # Nothing drains this queue any more; later sends see an unknown channel.
            if self._outboxes.get(channel_id) is queue:
                del self._outboxes[channel_id]

    @staticmethod
    async def _safe_close(ws: WebSocket) -> None:
        if ws.client_state != WebSocketState.CONNECTED:
            return
        try:
            await ws.close()
        except Exception:
            log.debug("Close failed for a websocket that was already going away")
