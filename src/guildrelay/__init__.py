"""Guild relay: Discord channel <-> WebSocket clients."""

__version__ = "0.1.0"
