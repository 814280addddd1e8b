"""Configuration module."""

from redshirt.config.loader import ENV_PREFIX, load_config
from redshirt.config.models import ConfigError, WrapperConfig

__all__ = [
    "ENV_PREFIX",
    "ConfigError",
    "WrapperConfig",
    "load_config",
]
