"""Fan-out broadcaster: one gateway event -> every registered push client."""

from __future__ import annotations

import asyncio
import contextlib

from loguru import logger

from guildrelay.base import ServiceBase
from guildrelay.events import MessageIn, relay_message_from
from guildrelay.gateway.filter import ChannelFilter
from guildrelay.push.registry import ClientConnection, ClientRegistry


class ClientClosedError(ConnectionError):
    """Push socket was already closed when we tried to send."""


class FanoutBroadcaster(ServiceBase):
    """Filters gateway events and pushes matching ones to all live clients.

    Delivery is best-effort and at-most-once. A client whose send fails is
    dropped from the registry; the others still receive the frame.
    """

    def __init__(
        self,
        registry: ClientRegistry,
        channel_filter: ChannelFilter,
        *,
        send_timeout: float | None = 10.0,
    ) -> None:
        self._registry = registry
        self._filter = channel_filter
        self._send_timeout = send_timeout
        self._queue: asyncio.Queue[MessageIn] = asyncio.Queue()
        self._consumer_task: asyncio.Task | None = None

    @property
    def name(self) -> str:
        return "broadcaster"

    def accept_event(self, source: str, evt: object) -> bool:
        return isinstance(evt, MessageIn)

    def push_event(self, source: str, evt: object) -> None:
        """Queue the event; the consumer fans out in arrival order."""
        if isinstance(evt, MessageIn):
            self._queue.put_nowait(evt)

    async def _with_timeout(self, aw) -> None:
        if self._send_timeout is None:
            await aw
        else:
            await asyncio.wait_for(aw, timeout=self._send_timeout)

    async def _send_one(self, connection: ClientConnection, frame: dict[str, str]) -> bool:
        """Push one frame. A failed client is dropped as soon as its own send fails."""
        try:
            if connection.handle.closed:
                raise ClientClosedError(f"client {connection.client_id} already closed")
            await self._with_timeout(connection.handle.send_json(frame))
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("Push to client {} failed: {!r}; dropping it", connection.client_id, exc)
            self._registry.unregister(connection)
            await self._close_quietly(connection)
            return False
        return True

    async def _close_quietly(self, connection: ClientConnection) -> None:
        """Close a dropped client's socket so its handler exits."""
        if connection.handle.closed:
            return
        try:
            await self._with_timeout(connection.handle.close())
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.debug("Closing client {} failed: {!r}", connection.client_id, exc)

    async def on_gateway_event(self, evt: MessageIn) -> int:
        """Fan out one event. Returns the number of clients that received it."""
        if not self._filter.matches(evt.channel_id):
            logger.debug("Dropping event from channel {} (not relayed)", evt.channel_id)
            return 0

        frame = relay_message_from(evt).to_frame()
        recipients = self._registry.snapshot()
        if not recipients:
            return 0

        results = await asyncio.gather(*(self._send_one(conn, frame) for conn in recipients))
        delivered = sum(results)
        logger.debug("Relayed message {} to {}/{} clients", evt.message_id, delivered, len(recipients))
        return delivered

    async def _queue_consumer(self) -> None:
        """Background consumer: pop from queue and fan out, one event at a time."""
        while True:
            try:
                evt = await self._queue.get()
                await self.on_gateway_event(evt)
            except asyncio.CancelledError:
                break
            except Exception as exc:
                logger.exception("Fan-out failed: {}", exc)

    async def start(self) -> None:
        self._consumer_task = asyncio.create_task(self._queue_consumer())

    async def stop(self) -> None:
        if self._consumer_task:
            self._consumer_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._consumer_task
        self._consumer_task = None
