"""
Storage Layer.

This package handles loading the INI configuration file.
"""

from .config_manager import ConfigManager, LoadedConfig

__all__ = ["ConfigManager", "LoadedConfig"]
