"""Gateway session: the single Discord connection shared by both relay directions."""

from __future__ import annotations

import asyncio
import contextlib
import enum

import aiohttp
import discord
from discord.abc import Messageable
from loguru import logger

from guildrelay.base import ServiceBase
from guildrelay.errors import AuthError, ChannelNotFoundError, NetworkError, RelayError, SendFailedError
from guildrelay.events import Dispatcher, EventTarget, message_in

# Gateway close code for an invalid token
AUTH_FAILED_CLOSE_CODE = 4004

_TRANSPORT_ERRORS = (aiohttp.ClientError, OSError, asyncio.TimeoutError)


class SessionState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"


def build_intents() -> discord.Intents:
    """Guild + guild message intents, with message content."""
    intents = discord.Intents.none()
    intents.guilds = True
    intents.guild_messages = True
    intents.message_content = True
    return intents


def _translate_gateway_error(exc: BaseException) -> RelayError:
    """Map discord.py/transport exceptions to relay errors."""
    if isinstance(exc, RelayError):
        return exc
    if isinstance(exc, discord.LoginFailure):
        return AuthError("gateway rejected credentials", code="login_failure", original_error=exc)
    if isinstance(exc, discord.ConnectionClosed) and exc.code == AUTH_FAILED_CLOSE_CODE:
        return AuthError("gateway closed: authentication failed", code="auth_closed", original_error=exc)
    if isinstance(exc, discord.PrivilegedIntentsRequired):
        return AuthError("privileged intents not enabled for this bot", code="intents", original_error=exc)
    return NetworkError(
        f"gateway transport failure: {exc.__class__.__name__}",
        code="transport",
        original_error=exc,
    )


class GatewaySession(ServiceBase):
    """Owns the discord.Client. Dispatches MessageIn to observers, sends to a channel on request."""

    def __init__(
        self,
        dispatcher: Dispatcher | None = None,
        *,
        client: discord.Client | None = None,
        token: str | None = None,
        reconnect: bool = True,
    ) -> None:
        self._dispatcher = dispatcher or Dispatcher()
        self._client = client
        self._token = token
        self._reconnect = reconnect
        self._state = SessionState.DISCONNECTED
        self._identity: str | None = None
        self._gateway_task: asyncio.Task | None = None
        self._ready = asyncio.Event()

    @property
    def name(self) -> str:
        return "gateway"

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def identity(self) -> str | None:
        """Bot user tag once READY."""
        return self._identity

    @property
    def is_ready(self) -> bool:
        return self._state is SessionState.READY

    def _build_client(self) -> discord.Client:
        client = discord.Client(intents=build_intents())

        @client.event
        async def on_ready() -> None:
            await self._on_ready()

        # discord.py resumes internally; the session stays READY across a resume
        @client.event
        async def on_resumed() -> None:
            logger.info("Gateway session resumed")

        @client.event
        async def on_disconnect() -> None:
            logger.warning("Gateway connection dropped; discord.py is reconnecting")

        @client.event
        async def on_message(message: discord.Message) -> None:
            self._on_message(message)

        return client

    def _set_state(self, state: SessionState) -> None:
        if state is not self._state:
            logger.debug("Gateway state {} -> {}", self._state.value, state.value)
        self._state = state
        if state is SessionState.READY:
            self._ready.set()
        else:
            self._ready.clear()

    async def _on_ready(self) -> None:
        user = self._client.user if self._client else None
        self._identity = str(user) if user else None
        self._set_state(SessionState.READY)
        logger.info("Logged in as {}", self._identity)

    def _on_message(self, message: discord.Message) -> None:
        """Publish one MessageIn per inbound message, in delivery order."""
        if self._state is not SessionState.READY:
            logger.debug("Dropping message {} received before ready", message.id)
            return
        author = message.author
        _, evt = message_in(
            channel_id=str(message.channel.id),
            author_id=str(author.id),
            author_display=author.name,
            content=message.content or "",
            message_id=str(message.id),
            is_bot=bool(author.bot),
        )
        self._dispatcher.dispatch("discord", evt)

    def on_event(self, target: EventTarget) -> None:
        """Register an observer for inbound gateway events."""
        self._dispatcher.register(target)

    def off_event(self, target: EventTarget) -> None:
        """Remove an observer registered with on_event."""
        self._dispatcher.unregister(target)

    async def connect(self, token: str | None = None) -> None:
        """Log in and start the gateway connection. Raises AuthError or NetworkError."""
        token = token or self._token
        if not token:
            raise AuthError("no gateway token configured", code="missing_token")
        if self._state is not SessionState.DISCONNECTED:
            logger.debug("Gateway connect() ignored in state {}", self._state.value)
            return

        if self._client is None or self._client.is_closed():
            self._client = self._build_client()
        self._set_state(SessionState.CONNECTING)
        logger.info("Connecting to gateway")
        try:
            await self._client.login(token)
        except (discord.LoginFailure, discord.HTTPException, *_TRANSPORT_ERRORS) as exc:
            self._set_state(SessionState.DISCONNECTED)
            err = _translate_gateway_error(exc)
            logger.error("Gateway login failed: {}", err)
            raise err from exc

        self._gateway_task = asyncio.create_task(self._run_gateway())

    async def _run_gateway(self) -> None:
        """Run the websocket loop; any exit is terminal for this session."""
        assert self._client is not None
        try:
            await self._client.connect(reconnect=self._reconnect)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            err = _translate_gateway_error(exc)
            logger.error("Gateway session ended: {}", err)
            await self._client.close()
            raise err from exc
        finally:
            self._set_state(SessionState.DISCONNECTED)

    async def wait_until_ready(self, timeout: float | None = None) -> None:
        """Wait for READY, or raise the gateway task's failure."""
        waiter = asyncio.create_task(self._ready.wait())
        pending = {waiter}
        if self._gateway_task is not None:
            pending.add(self._gateway_task)
        try:
            done, _ = await asyncio.wait(pending, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
        if self._gateway_task is not None and self._gateway_task in done:
            self._gateway_task.result()
            raise NetworkError("gateway closed before ready", code="closed")
        if not done:
            raise NetworkError("timed out waiting for gateway", code="timeout")

    async def wait_closed(self) -> None:
        """Wait for the gateway task to end. Re-raises its fatal error."""
        if self._gateway_task is not None:
            await self._gateway_task

    async def _resolve_channel(self, channel_id: str) -> Messageable:
        assert self._client is not None
        try:
            cid = int(channel_id)
        except (TypeError, ValueError) as exc:
            raise ChannelNotFoundError(f"invalid channel id {channel_id!r}", code="invalid_id") from exc

        channel = self._client.get_channel(cid)
        if channel is None:
            try:
                channel = await self._client.fetch_channel(cid)
            except (discord.NotFound, discord.Forbidden, discord.InvalidData) as exc:
                raise ChannelNotFoundError(
                    f"channel {channel_id} not found",
                    code="not_found",
                    details={"channel_id": channel_id},
                    original_error=exc,
                ) from exc
            except discord.HTTPException as exc:
                raise ChannelNotFoundError(
                    f"channel {channel_id} could not be fetched",
                    code="fetch_failed",
                    details={"channel_id": channel_id, "status": exc.status},
                    original_error=exc,
                ) from exc
            except _TRANSPORT_ERRORS as exc:
                raise NetworkError("transport failure fetching channel", original_error=exc) from exc

        if not isinstance(channel, Messageable):
            raise ChannelNotFoundError(
                f"channel {channel_id} is not a text channel",
                code="not_messageable",
                details={"channel_id": channel_id},
            )
        return channel

    async def send_to_channel(self, channel_id: str, text: str) -> str:
        """Post text to the channel. Returns the new message id."""
        if self._state is not SessionState.READY or self._client is None:
            raise NetworkError("gateway session not ready", code="not_ready", details={"state": self._state.value})

        channel = await self._resolve_channel(channel_id)
        try:
            message = await channel.send(text)
        except discord.HTTPException as exc:
            raise SendFailedError(
                "gateway rejected message",
                code="rejected",
                details={"channel_id": channel_id, "status": exc.status},
                original_error=exc,
            ) from exc
        except _TRANSPORT_ERRORS as exc:
            raise NetworkError("transport failure sending message", original_error=exc) from exc

        logger.debug("Sent message {} to channel {}", message.id, channel_id)
        return str(message.id)

    async def start(self) -> None:
        """Connect with the configured token."""
        await self.connect()

    async def stop(self) -> None:
        """Close the client and wait for the gateway task."""
        if self._client is not None and not self._client.is_closed():
            await self._client.close()
        if self._gateway_task is not None:
            self._gateway_task.cancel()
            with contextlib.suppress(asyncio.CancelledError, RelayError):
                await self._gateway_task
        self._gateway_task = None
        self._identity = None
        self._set_state(SessionState.DISCONNECTED)
