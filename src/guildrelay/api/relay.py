"""Inbound relay endpoint: client-submitted text -> guild channel."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from loguru import logger

from guildrelay.errors import RelayError, ValidationError
from guildrelay.gateway.filter import ChannelFilter


class ChannelSender(Protocol):
    async def send_to_channel(self, channel_id: str, text: str) -> str: ...


@dataclass(frozen=True)
class SubmitResult:
    """Acknowledgment returned to the caller. Carries no error detail."""

    success: bool
    error_code: str | None = None  # server-side only; never serialized

    def to_json(self) -> dict[str, bool]:
        return {"success": self.success}


def validate_submission(payload: Any) -> str:
    """Return the message text, or raise ValidationError."""
    if not isinstance(payload, dict):
        raise ValidationError("request body must be an object", code="not_object")
    text = payload.get("message")
    if not isinstance(text, str):
        raise ValidationError("message is required", code="missing_message")
    if not text.strip():
        raise ValidationError("message is empty", code="empty_message")
    return text


class RelayEndpoint:
    """Validates a submission and forwards it to the configured channel."""

    def __init__(self, sender: ChannelSender, channel_filter: ChannelFilter) -> None:
        self._sender = sender
        self._filter = channel_filter

    async def submit(self, payload: Any) -> SubmitResult:
        """Forward one submission. Exactly one result per call; never raises."""
        try:
            text = validate_submission(payload)
        except ValidationError as exc:
            logger.info("Rejected submission: {}", exc)
            return SubmitResult(success=False, error_code="validation")

        channel_id = self._filter.channel_id
        try:
            message_id = await self._sender.send_to_channel(channel_id, text)
        except RelayError as exc:
            logger.warning("Relay to channel {} failed: {} ({})", channel_id, exc, exc.__class__.__name__)
            return SubmitResult(success=False, error_code="gateway")
        except Exception as exc:
            logger.exception("Unexpected error relaying to channel {}: {}", channel_id, exc)
            return SubmitResult(success=False, error_code="internal")

        logger.info("Relayed client message to channel {} as {}", channel_id, message_id)
        return SubmitResult(success=True)
