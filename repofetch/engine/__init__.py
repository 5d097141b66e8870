"""
Transfer Engine Layer.

This package defines the contract a transfer engine fulfils and ships the
default aiohttp-based implementation.
"""

from .aiohttp_engine import AiohttpEngine
from .base import (
    EngineDiagnostic,
    EngineError,
    EngineOption,
    IpResolve,
    ProxyAuthMethod,
    TransferEngine,
)

__all__ = [
    "AiohttpEngine",
    "EngineDiagnostic",
    "EngineError",
    "EngineOption",
    "IpResolve",
    "ProxyAuthMethod",
    "TransferEngine",
]
