"""Channel filter: the single guild channel this process relays."""

from __future__ import annotations

from typing import Any

from loguru import logger


class ChannelFilter:
    """Matches events against one configured channel id. Everything else is dropped."""

    def __init__(self, channel_id: str | int | None = None) -> None:
        self._channel_id = str(channel_id) if channel_id else ""

    def load_from_config(self, config: dict[str, Any]) -> None:
        """Load the target channel from config dict (config.channel_id)."""
        raw = config.get("channel_id")
        if not raw:
            logger.warning("Filter: no channel_id in config; nothing will be relayed")
            self._channel_id = ""
            return
        self._channel_id = str(raw)
        logger.info("Filter: relaying channel {}", self._channel_id)

    @property
    def channel_id(self) -> str:
        return self._channel_id

    def matches(self, channel_id: str | int) -> bool:
        """True when channel_id is the configured channel."""
        return bool(self._channel_id) and str(channel_id) == self._channel_id
