"""Base service interface: subscribe/publish, start/stop."""

from __future__ import annotations

from abc import ABC, abstractmethod


class ServiceBase(ABC):
    """Interface for long-running components. Optional event target, start/stop."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Service identifier (e.g. 'gateway', 'push', 'api')."""
        ...

    def accept_event(self, source: str, evt: object) -> bool:
        """Return True if this service wants the event. Override for filtering."""
        return False

    def push_event(self, source: str, evt: object) -> None:
        """Handle event. Override to process. May queue for async handling."""
        pass

    @abstractmethod
    async def start(self) -> None:
        """Start the service (connect, bind, spawn tasks)."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Stop the service (disconnect, cleanup)."""
        ...
