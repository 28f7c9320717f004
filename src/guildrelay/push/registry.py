"""Client registry: live outbound push connections."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Protocol

from loguru import logger


class PushSocket(Protocol):
    """What the broadcaster needs from a push connection handle."""

    @property
    def closed(self) -> bool: ...

    async def send_json(self, data: Any) -> None: ...

    async def close(self) -> Any: ...


@dataclass(eq=False)
class ClientConnection:
    """One connected push client. Identity is the object itself."""

    handle: PushSocket
    remote: str | None = None
    client_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    connected_at: float = field(default_factory=time.time)
    alive: bool = True


class ClientRegistry:
    """Tracks live push connections.

    Membership changes are plain dict operations with no await in between, so
    they are atomic on the event loop and need no lock.
    """

    def __init__(self) -> None:
        self._connections: dict[str, ClientConnection] = {}

    def register(self, connection: ClientConnection) -> None:
        """Add a live connection."""
        connection.alive = True
        self._connections[connection.client_id] = connection
        logger.info(
            "Client {} connected from {} ({} live)",
            connection.client_id,
            connection.remote or "unknown",
            len(self._connections),
        )

    def unregister(self, connection: ClientConnection) -> None:
        """Remove a connection. No-op if it is not registered."""
        connection.alive = False
        current = self._connections.get(connection.client_id)
        if current is not connection:
            return
        del self._connections[connection.client_id]
        logger.info(
            "Client {} removed after {:.1f}s ({} live)",
            connection.client_id,
            time.time() - connection.connected_at,
            len(self._connections),
        )

    def snapshot(self) -> tuple[ClientConnection, ...]:
        """Point-in-time view for iteration."""
        return tuple(self._connections.values())

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection: object) -> bool:
        if not isinstance(connection, ClientConnection):
            return False
        return self._connections.get(connection.client_id) is connection
