"""Event types and dispatcher: typed events, central dispatcher."""

from __future__ import annotations

import functools
from dataclasses import dataclass
from typing import Any, Protocol

from loguru import logger


@dataclass
class MessageIn:
    """Inbound gateway message, as seen on the guild channel."""

    channel_id: str
    author_id: str
    author_display: str
    content: str
    message_id: str
    is_bot: bool = False


@dataclass(frozen=True)
class RelayMessage:
    """Transient value handed from one relay stage to the next. Never stored."""

    author_display: str
    content: str
    channel_id: str

    def to_frame(self) -> dict[str, str]:
        """Push frame sent to WebSocket clients."""
        return {"username": self.author_display, "content": self.content}


class EventTarget(Protocol):
    """Observer interface: accept_event + push_event."""

    def accept_event(self, source: str, evt: object) -> bool:
        """Return True if this target wants the event."""
        ...

    def push_event(self, source: str, evt: object) -> None:
        """Handle the event (may be async via queue)."""
        ...


def event(type_name: str):
    """Decorator to mark a factory as producing an event with a given type."""

    def decorator(f: Any) -> Any:
        @functools.wraps(f)
        def wrapper(*args: Any, **kwargs: Any) -> tuple[str, object]:
            evt = f(*args, **kwargs)
            return (type_name, evt)

        wrapper.TYPE = type_name
        return wrapper

    return decorator


@event("message_in")
def message_in(
    channel_id: str,
    author_id: str,
    author_display: str,
    content: str,
    message_id: str,
    *,
    is_bot: bool = False,
) -> MessageIn:
    return MessageIn(
        channel_id=channel_id,
        author_id=author_id,
        author_display=author_display,
        content=content,
        message_id=message_id,
        is_bot=is_bot,
    )


def relay_message_from(evt: MessageIn) -> RelayMessage:
    """Build the relay value for an inbound gateway message."""
    return RelayMessage(
        author_display=evt.author_display,
        content=evt.content,
        channel_id=evt.channel_id,
    )


class Dispatcher:
    """Central event dispatcher; targets filter by type and receive events."""

    def __init__(self) -> None:
        self._targets: list[EventTarget] = []

    @property
    def targets(self) -> tuple[EventTarget, ...]:
        return tuple(self._targets)

    def register(self, target: EventTarget) -> None:
        """Register an event target. Registering twice is a no-op."""
        if target not in self._targets:
            self._targets.append(target)

    def unregister(self, target: EventTarget) -> None:
        """Unregister an event target."""
        if target in self._targets:
            self._targets.remove(target)

    def dispatch(self, source: str, evt: object) -> None:
        """Dispatch event to all targets that accept it, in registration order."""
        for target in list(self._targets):
            try:
                if target.accept_event(source, evt):
                    target.push_event(source, evt)
            except Exception as exc:
                logger.exception("Failed to pass event to target {}: {}", target, exc)
