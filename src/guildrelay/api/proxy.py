"""Generative-AI proxy: single-request pass-through to the Gemini API."""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1"


class GenerationError(Exception):
    """Upstream generation call failed. Detail stays server-side."""


class GenerativeProxy:
    """Forwards {prompt} to generateContent and returns the upstream JSON verbatim.

    No retry, no cache.
    """

    def __init__(
        self,
        api_key: str,
        *,
        model: str = "gemini-pro",
        base_url: str = GEMINI_BASE_URL,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    @property
    def url(self) -> str:
        return f"{self._base_url}/models/{self._model}:generateContent"

    @staticmethod
    def build_body(prompt: str) -> dict[str, Any]:
        return {"contents": [{"parts": [{"text": prompt}]}]}

    async def generate(self, prompt: Any) -> Any:
        """Return upstream JSON. Raises GenerationError on any failure."""
        if not isinstance(prompt, str):
            raise GenerationError("prompt must be a string")
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(self.url, params={"key": self._api_key}, json=self.build_body(prompt))
                resp.raise_for_status()
                return resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Generation request failed: {}", exc.__class__.__name__)
            raise GenerationError(str(exc)) from exc
