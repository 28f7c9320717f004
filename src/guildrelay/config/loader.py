"""Config file loading: a YAML file on disk plus a .env in the working directory."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import find_dotenv, load_dotenv
from loguru import logger

from guildrelay.errors import RelayConfigurationError

DEFAULT_CONFIG_PATH = Path("config.yaml")
CONFIG_PATH_ENV = "RELAY_CONFIG"


def resolve_config_path(path: str | Path | None = None) -> Path:
    """Pick the config file: explicit path, then $RELAY_CONFIG, then ./config.yaml."""
    if path:
        return Path(path)
    env_path = os.environ.get(CONFIG_PATH_ENV)
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


def load_config(path: str | Path) -> dict[str, Any]:
    """Read the relay's YAML file into a mapping.

    A missing or empty file yields {} so a purely env-driven deployment works.
    Unreadable files, malformed YAML and non-mapping documents raise
    RelayConfigurationError; callers never see a yaml exception.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.info("No config file at {}; using environment only", path)
        return {}
    except OSError as exc:
        raise RelayConfigurationError(
            f"cannot read config file {path}",
            code="unreadable",
            details={"path": str(path)},
            original_error=exc,
        ) from exc

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise RelayConfigurationError(
            f"config file {path} is not valid YAML",
            code="invalid_yaml",
            details={"path": str(path)},
            original_error=exc,
        ) from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise RelayConfigurationError(
            f"config file {path} must be a mapping",
            code="invalid_structure",
            details={"path": str(path), "type": type(data).__name__},
        )
    logger.debug("Read {} config keys from {}", len(data), path)
    return data


def load_config_with_env(path: str | Path | None = None) -> dict[str, Any]:
    """Load .env into the process env, then the YAML file.

    Env values are overlaid by Config itself so a reload picks them up too.
    """
    load_dotenv(find_dotenv(usecwd=True))
    return load_config(resolve_config_path(path))
