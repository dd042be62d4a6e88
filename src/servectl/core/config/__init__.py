"""Configuration loading for servectl."""

from .manager import CONFIG_PATH_ENV, ENV_PREFIX, ConfigManager
from .settings import ManagerSettings

__all__ = ["ConfigManager", "ManagerSettings", "ENV_PREFIX", "CONFIG_PATH_ENV"]
