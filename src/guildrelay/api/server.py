"""REST server: /send-message, /generate, /health (aiohttp.web)."""

from __future__ import annotations

import json
from typing import Any

from aiohttp import web
from loguru import logger

from guildrelay.api.proxy import GenerationError, GenerativeProxy
from guildrelay.api.relay import RelayEndpoint, SubmitResult
from guildrelay.base import ServiceBase
from guildrelay.gateway.session import GatewaySession
from guildrelay.push.registry import ClientRegistry

ENDPOINT_KEY = web.AppKey("endpoint", RelayEndpoint)
PROXY_KEY = web.AppKey("proxy", GenerativeProxy)
SESSION_KEY = web.AppKey("session", GatewaySession)
REGISTRY_KEY = web.AppKey("registry", ClientRegistry)
LEGACY_STATUS_KEY = web.AppKey("legacy_status_codes", bool)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET,HEAD,PUT,PATCH,POST,DELETE",
    "Access-Control-Allow-Headers": "Content-Type",
}

_NO_BODY = object()


def _status_for(result: SubmitResult, legacy: bool) -> int:
    if legacy or result.success:
        return 200
    if result.error_code == "validation":
        return 400
    if result.error_code == "gateway":
        return 502
    return 500


@web.middleware
async def cors_middleware(request: web.Request, handler: Any) -> web.StreamResponse:
    """Permissive CORS, including preflight."""
    if request.method == "OPTIONS":
        return web.Response(status=204, headers=CORS_HEADERS)
    response = await handler(request)
    response.headers.update(CORS_HEADERS)
    return response


async def _read_json(request: web.Request) -> Any:
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return _NO_BODY


async def send_message(request: web.Request) -> web.Response:
    payload = await _read_json(request)
    result = await request.app[ENDPOINT_KEY].submit(None if payload is _NO_BODY else payload)
    return web.json_response(result.to_json(), status=_status_for(result, request.app[LEGACY_STATUS_KEY]))


async def generate(request: web.Request) -> web.Response:
    proxy = request.app.get(PROXY_KEY)
    if proxy is None:
        raise web.HTTPNotFound()
    payload = await _read_json(request)
    prompt = payload.get("prompt") if isinstance(payload, dict) else None
    try:
        data = await proxy.generate(prompt)
    except GenerationError:
        return web.json_response({"error": "generation failed"}, status=500)
    return web.json_response(data)


async def health(request: web.Request) -> web.Response:
    session = request.app.get(SESSION_KEY)
    registry = request.app.get(REGISTRY_KEY)
    return web.json_response(
        {
            "gateway": session.state.value if session else "unknown",
            "clients": len(registry) if registry is not None else 0,
        }
    )


def create_api_app(
    endpoint: RelayEndpoint,
    *,
    proxy: GenerativeProxy | None = None,
    session: GatewaySession | None = None,
    registry: ClientRegistry | None = None,
    legacy_status_codes: bool = False,
) -> web.Application:
    app = web.Application(middlewares=[cors_middleware])
    app[ENDPOINT_KEY] = endpoint
    app[LEGACY_STATUS_KEY] = legacy_status_codes
    if proxy is not None:
        app[PROXY_KEY] = proxy
    if session is not None:
        app[SESSION_KEY] = session
    if registry is not None:
        app[REGISTRY_KEY] = registry
    app.router.add_post("/send-message", send_message)
    app.router.add_post("/generate", generate)
    app.router.add_get("/health", health)
    return app


class ApiServer(ServiceBase):
    """Serves the REST app on its own port."""

    def __init__(self, app: web.Application, *, host: str = "0.0.0.0", port: int = 3000) -> None:
        self._app = app
        self._host = host
        self._port = port
        self._runner: web.AppRunner | None = None

    @property
    def name(self) -> str:
        return "api"

    async def start(self) -> None:
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._host, self._port)
        await site.start()
        logger.info("REST server listening on http://{}:{}", self._host, self._port)

    async def stop(self) -> None:
        if self._runner:
            await self._runner.cleanup()
        self._runner = None
