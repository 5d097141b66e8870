"""
Data Models Layer.

This package contains the Pydantic configuration models and the statistics
collected while a transfer runs.
"""

from .config import ConfigMain, ConfigRepo, RemoteConfig
from .stats import TransferStats

__all__ = ["ConfigMain", "ConfigRepo", "RemoteConfig", "TransferStats"]
