"""Configuration: YAML + env overlay."""

from guildrelay.config.loader import load_config, load_config_with_env, resolve_config_path
from guildrelay.config.schema import Config, cfg

__all__ = ["Config", "cfg", "load_config", "load_config_with_env", "resolve_config_path"]
