"""Outbound push: client registry, fan-out, WebSocket server."""

from guildrelay.push.broadcaster import FanoutBroadcaster
from guildrelay.push.registry import ClientConnection, ClientRegistry
from guildrelay.push.server import PushServer, create_push_app

__all__ = ["ClientConnection", "ClientRegistry", "FanoutBroadcaster", "PushServer", "create_push_app"]
