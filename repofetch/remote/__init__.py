"""
Remote Session Layer.

This package owns the engine's session and result objects and programs a
session from a global or per-repository configuration.
"""

from .configure import init_remote
from .handle import SessionHandle, SessionResult

__all__ = ["SessionHandle", "SessionResult", "init_remote"]
