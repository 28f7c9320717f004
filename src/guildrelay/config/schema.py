"""Config schema and accessor."""

from __future__ import annotations

import os
from typing import Any

from loguru import logger

from guildrelay.errors import RelayConfigurationError

# Env key -> config key. Env wins over the file.
_ENV_OVERRIDE_KEYS = {
    "DISCORD_TOKEN": "discord_token",
    "CHANNEL_ID": "channel_id",
    "GEMINI_API_KEY": "gemini_api_key",
    "RELAY_PUSH_PORT": "push_port",
    "RELAY_HTTP_PORT": "http_port",
    "RELAY_LEGACY_STATUS_CODES": "legacy_status_codes",
    "RELAY_GATEWAY_RECONNECT": "gateway_reconnect",
}
_CONFIG_TO_ENV = {v: k for k, v in _ENV_OVERRIDE_KEYS.items()}


def _load_env_overrides() -> dict[str, str]:
    """Load env overrides once per reload."""
    return {k: os.environ.get(k, "") for k in _ENV_OVERRIDE_KEYS}


def _parse_bool_env(val: str) -> bool | None:
    """Parse env string to bool; None if not a recognized bool."""
    v = val.lower()
    if v in ("1", "true", "yes"):
        return True
    if v in ("0", "false", "no"):
        return False
    return None


class Config:
    """Config accessor with attribute-style access for known keys."""

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self._data = data or {}
        self._env: dict[str, str] = _load_env_overrides()

    def reload(self, data: dict[str, Any], *, validate: bool = True) -> None:
        """Replace config data (e.g. on SIGHUP reload).

        The candidate is validated first; a rejected reload leaves the live config untouched.
        """
        candidate = Config(data)
        if validate:
            candidate._validate()
        self._data = candidate._data
        self._env = candidate._env
        logger.debug("Config reloaded: channel {}", self.channel_id or "<unset>")

    def _value(self, key: str, default: Any = None) -> Any:
        env_key = _CONFIG_TO_ENV.get(key)
        if env_key and self._env.get(env_key):
            return self._env[env_key]
        return self._data.get(key, default)

    def _bool(self, key: str, default: bool) -> bool:
        val = self._value(key, default)
        if isinstance(val, str):
            parsed = _parse_bool_env(val)
            return default if parsed is None else parsed
        return bool(val)

    def _validate(self) -> None:
        """Validate config; raise RelayConfigurationError on failure."""
        if not self.channel_id:
            raise RelayConfigurationError(
                "channel_id is required (config or CHANNEL_ID)",
                code="missing_channel_id",
            )
        if not self.channel_id.isdigit():
            raise RelayConfigurationError(
                "channel_id must be a numeric snowflake",
                code="invalid_channel_id",
                details={"channel_id": self.channel_id},
            )
        for key in ("push_port", "http_port"):
            try:
                port = int(self._value(key, 0) or 0)
            except (TypeError, ValueError) as exc:
                raise RelayConfigurationError(
                    f"{key} must be an integer",
                    code="invalid_port",
                    details={"key": key},
                    original_error=exc,
                ) from exc
            if not 0 <= port <= 65535:
                raise RelayConfigurationError(f"{key} out of range", code="invalid_port", details={"key": key})

    @property
    def raw(self) -> dict[str, Any]:
        """Raw config dict with env overrides applied, for the filter."""
        merged = dict(self._data)
        merged["channel_id"] = self.channel_id
        return merged

    @property
    def discord_token(self) -> str | None:
        val = self._value("discord_token")
        return str(val) if val else None

    @property
    def channel_id(self) -> str:
        val = self._value("channel_id")
        return str(val).strip() if val else ""

    @property
    def push_host(self) -> str:
        return str(self._data.get("push_host", "0.0.0.0"))

    @property
    def push_port(self) -> int:
        return int(self._value("push_port", 8080))

    @property
    def push_send_timeout_seconds(self) -> float:
        return float(self._data.get("push_send_timeout_seconds", 10))

    @property
    def http_host(self) -> str:
        return str(self._data.get("http_host", "0.0.0.0"))

    @property
    def http_port(self) -> int:
        return int(self._value("http_port", 3000))

    @property
    def legacy_status_codes(self) -> bool:
        return self._bool("legacy_status_codes", False)

    @property
    def gateway_reconnect(self) -> bool:
        return self._bool("gateway_reconnect", False)

    @property
    def gateway_reconnect_attempts(self) -> int:
        return int(self._data.get("gateway_reconnect_attempts", 5))

    @property
    def gemini_api_key(self) -> str | None:
        val = self._value("gemini_api_key")
        return str(val) if val else None

    @property
    def gemini_model(self) -> str:
        return str(self._data.get("gemini_model", "gemini-pro"))

    @property
    def gemini_timeout_seconds(self) -> float:
        return float(self._data.get("gemini_timeout_seconds", 30))


cfg: Config = Config({})
