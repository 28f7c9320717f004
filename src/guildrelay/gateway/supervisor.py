"""Reconnect policy layered above the gateway session. Off unless configured."""

from __future__ import annotations

from loguru import logger
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from guildrelay.errors import NetworkError
from guildrelay.gateway.session import GatewaySession


def _log_retry(state: RetryCallState) -> None:
    exc = state.outcome.exception() if state.outcome else None
    logger.warning(
        "Gateway attempt {} failed ({}); retrying in {:.1f}s",
        state.attempt_number,
        exc,
        state.next_action.sleep if state.next_action else 0.0,
    )


class GatewaySupervisor:
    """Runs a session and reconnects on NetworkError with exponential backoff.

    AuthError is never retried. The session itself stays reconnect-free.
    """

    def __init__(
        self,
        session: GatewaySession,
        *,
        attempts: int = 5,
        min_wait: float = 2.0,
        max_wait: float = 60.0,
    ) -> None:
        self._session = session
        self._attempts = attempts
        self._min_wait = min_wait
        self._max_wait = max_wait

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self._attempts),
            wait=wait_exponential(multiplier=1, min=self._min_wait, max=self._max_wait),
            retry=retry_if_exception_type(NetworkError),
            before_sleep=_log_retry,
            reraise=True,
        )

    async def _run_once(self) -> None:
        await self._session.connect()
        await self._session.wait_closed()

    async def run(self) -> None:
        """Connect and keep the session alive until attempts run out or auth fails."""
        async for attempt in self._retrying():
            with attempt:
                await self._run_once()
