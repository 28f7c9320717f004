"""Relay entrypoint. Loads config, connects the gateway, serves push + REST."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Any

from loguru import logger

from guildrelay import __version__
from guildrelay.api import ApiServer, GenerativeProxy, RelayEndpoint, create_api_app
from guildrelay.base import ServiceBase
from guildrelay.config import Config, cfg, load_config_with_env
from guildrelay.errors import AuthError, RelayConfigurationError, RelayError
from guildrelay.gateway import ChannelFilter, GatewaySession, GatewaySupervisor
from guildrelay.push import ClientRegistry, FanoutBroadcaster, PushServer

# Third-party libraries to intercept and route through loguru
_INTERCEPTED_LIBRARIES = ["discord", "discord.client", "discord.gateway", "discord.http", "aiohttp.access"]


def _intercept_logging(level: str) -> None:
    """Route third-party library logs to loguru."""

    class InterceptHandler(logging.Handler):
        def emit(self, record: logging.LogRecord) -> None:
            try:
                log_level: str | int = logger.level(record.levelname).name
            except ValueError:
                log_level = record.levelno
            msg = record.getMessage().replace("{", "{{").replace("}", "}}")
            logger.patch(
                lambda r: r.update(
                    name=record.name,
                    function=record.funcName,
                    line=record.lineno,
                ),
            ).opt(exception=record.exc_info).log(log_level, msg)

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for lib in _INTERCEPTED_LIBRARIES:
        lib_logger = logging.getLogger(lib)
        lib_logger.handlers = [InterceptHandler()]
        lib_logger.propagate = False
        lib_logger.setLevel(level)


def _safe_message_filter(record: Any) -> bool:
    """Escape braces/angles in log messages to prevent format/tag errors."""
    if isinstance(record.get("message"), str):
        msg = record["message"]
        msg = msg.replace("{", "{{").replace("}", "}}").replace("<", "\\<")
        record["message"] = msg
    return True


def setup_logging(verbose: bool = False) -> None:
    """Configure loguru. Replace default logging.
    Level: verbose=True or LOG_LEVEL=DEBUG enables DEBUG; otherwise INFO."""
    level = "INFO"
    if verbose:
        level = "DEBUG"
    else:
        env_level = (os.environ.get("LOG_LEVEL") or "").upper()
        if env_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
            level = env_level

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format=("<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan> | {message}"),
        filter=_safe_message_filter,
    )
    _intercept_logging(level)


def reload_config(config_path: Path | None = None) -> Config:
    """Load config from path and update global cfg. The live cfg is untouched on failure."""
    data = load_config_with_env(config_path)
    cfg.reload(data)
    return cfg


def _handle_sighup(relay: Relay, config_path: Path | None) -> None:
    """Re-read config and re-point the relay. A bad file is logged and the old config kept."""
    try:
        config = reload_config(config_path)
    except RelayConfigurationError as exc:
        logger.error("Config reload rejected, keeping current config: {}", exc)
        return
    relay.reload(config)
    logger.info("Config reloaded (SIGHUP); relaying channel {}", config.channel_id)


class Relay:
    """Wires the gateway, registry, broadcaster and HTTP servers together."""

    def __init__(self, config: Config, *, session: GatewaySession | None = None) -> None:
        self.config = config
        self.channel_filter = ChannelFilter()
        self.channel_filter.load_from_config(config.raw)
        self.registry = ClientRegistry()
        self.session = session or GatewaySession(token=config.discord_token)
        self.broadcaster = FanoutBroadcaster(
            self.registry,
            self.channel_filter,
            send_timeout=config.push_send_timeout_seconds,
        )
        self.session.on_event(self.broadcaster)
        self.endpoint = RelayEndpoint(self.session, self.channel_filter)

        proxy: GenerativeProxy | None = None
        if config.gemini_api_key:
            proxy = GenerativeProxy(
                config.gemini_api_key,
                model=config.gemini_model,
                timeout=config.gemini_timeout_seconds,
            )
        else:
            logger.info("GEMINI_API_KEY not set; /generate disabled")

        self.services: list[ServiceBase] = [
            self.broadcaster,
            PushServer(self.registry, host=config.push_host, port=config.push_port),
            ApiServer(
                create_api_app(
                    self.endpoint,
                    proxy=proxy,
                    session=self.session,
                    registry=self.registry,
                    legacy_status_codes=config.legacy_status_codes,
                ),
                host=config.http_host,
                port=config.http_port,
            ),
        ]

    def reload(self, config: Config) -> None:
        """Re-point the filter after a config reload."""
        self.channel_filter.load_from_config(config.raw)

    async def run(self) -> None:
        """Start services, run the gateway until it ends, then stop everything."""
        for service in self.services:
            logger.info("Starting {} service", service.name)
            await service.start()
        try:
            if self.config.gateway_reconnect:
                await GatewaySupervisor(self.session, attempts=self.config.gateway_reconnect_attempts).run()
            else:
                await self.session.connect()
                await self.session.wait_closed()
        finally:
            logger.info("Relay shutting down")
            await self.session.stop()
            for service in reversed(self.services):
                logger.info("Stopping {} service", service.name)
                await service.stop()


def main() -> None:
    """Main entrypoint."""
    parser = argparse.ArgumentParser(description="Guild relay: Discord channel to WebSocket/REST clients")
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=None,
        help="Path to config file (default: $RELAY_CONFIG, then config.yaml; optional when env is set)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    args = parser.parse_args()

    setup_logging(args.verbose)

    try:
        config = reload_config(args.config)
    except RelayConfigurationError as exc:
        logger.error("Invalid config: {}", exc)
        sys.exit(1)
    if not config.discord_token:
        logger.error("DISCORD_TOKEN not set")
        sys.exit(1)
    logger.info("Config loaded; relaying channel {}", config.channel_id)

    relay = Relay(config)

    def on_sighup(*a: object, **kw: object) -> None:
        _handle_sighup(relay, args.config)

    signal.signal(signal.SIGHUP, on_sighup)

    try:
        asyncio.run(relay.run())
    except KeyboardInterrupt:
        logger.info("Interrupted")
    except AuthError as exc:
        logger.error("Gateway authentication failed: {}", exc)
        sys.exit(1)
    except RelayError as exc:
        logger.error("Gateway session lost: {}", exc)
        sys.exit(1)


if __name__ == "__main__":
    main()
