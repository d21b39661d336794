"""
Configuration management for remindq.
"""

from remindq.config.config_loader import (
    ConfigLoader,
    get_config_loader,
    init_config_loader,
    reset_config_loader,
)
from remindq.config.settings import Settings, load_settings

__all__ = [
    "ConfigLoader",
    "Settings",
    "get_config_loader",
    "init_config_loader",
    "load_settings",
    "reset_config_loader",
]
