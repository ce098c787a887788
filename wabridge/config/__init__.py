"""Configuration module for wabridge."""

from wabridge.config.loader import get_config_path, load_config
from wabridge.config.schema import ChatwootConfig, Config, NormalizeConfig

__all__ = ["ChatwootConfig", "Config", "NormalizeConfig", "get_config_path", "load_config"]
