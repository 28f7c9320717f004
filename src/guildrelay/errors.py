"""Relay domain exceptions."""

from __future__ import annotations


class RelayError(Exception):
    """Base for relay domain errors."""

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        details: dict[str, object] | None = None,
        original_error: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.details = details or {}
        self.original_error = original_error


class RelayConfigurationError(RelayError):
    """Config validation or load failure."""


class AuthError(RelayError):
    """Gateway rejected the credentials. Fatal until restart."""


class NetworkError(RelayError):
    """Transport failure talking to the gateway, or session not ready."""


class ChannelNotFoundError(RelayError):
    """Target channel could not be fetched or cannot receive messages."""


class SendFailedError(RelayError):
    """Gateway rejected the outbound message."""


class ValidationError(RelayError):
    """Malformed or empty client submission."""
