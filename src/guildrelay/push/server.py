"""Push server: aiohttp WebSocket endpoint feeding the client registry."""

from __future__ import annotations

from aiohttp import WSMsgType, web
from loguru import logger

from guildrelay.base import ServiceBase
from guildrelay.push.registry import ClientConnection, ClientRegistry

REGISTRY_KEY = web.AppKey("registry", ClientRegistry)


async def websocket_handler(request: web.Request) -> web.WebSocketResponse:
    """Register the socket for the life of the connection. Inbound frames are ignored."""
    registry = request.app[REGISTRY_KEY]
    ws = web.WebSocketResponse(heartbeat=30.0)
    await ws.prepare(request)

    connection = ClientConnection(handle=ws, remote=request.remote)
    registry.register(connection)
    try:
        async for msg in ws:
            if msg.type == WSMsgType.ERROR:
                logger.warning("Client {} socket error: {}", connection.client_id, ws.exception())
                break
            logger.debug("Ignoring {} frame from client {}", msg.type.name, connection.client_id)
    finally:
        registry.unregister(connection)
    return ws


async def _close_sockets(app: web.Application) -> None:
    for connection in app[REGISTRY_KEY].snapshot():
        await connection.handle.close()


def create_push_app(registry: ClientRegistry) -> web.Application:
    app = web.Application()
    app[REGISTRY_KEY] = registry
    app.router.add_get("/", websocket_handler)
    app.on_shutdown.append(_close_sockets)
    return app


class PushServer(ServiceBase):
    """Serves the push WebSocket on its own port."""

    def __init__(self, registry: ClientRegistry, *, host: str = "0.0.0.0", port: int = 8080) -> None:
        self._registry = registry
        self._host = host
        self._port = port
        self._runner: web.AppRunner | None = None

    @property
    def name(self) -> str:
        return "push"

    async def start(self) -> None:
        self._runner = web.AppRunner(create_push_app(self._registry))
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._host, self._port)
        await site.start()
        logger.info("Push WebSocket listening on ws://{}:{}/", self._host, self._port)

    async def stop(self) -> None:
        if self._runner:
            await self._runner.cleanup()
        self._runner = None
