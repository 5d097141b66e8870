"""
Defines custom exceptions for the application to allow for more specific error handling.
"""

from typing import Any


class RepoFetchError(Exception):
    """Base exception for all application-specific errors."""


class AllocationFailed(RepoFetchError):
    """Raised when the transfer engine refuses to allocate a session or result."""


class OptionRejected(RepoFetchError):
    """
    Raised when the transfer engine rejects an option value.

    The engine's diagnostic is kept verbatim in `diagnostic` and as the message.
    """

    def __init__(self, option: Any, diagnostic: Any):
        self.option = option
        self.diagnostic = diagnostic
        super().__init__(f"{diagnostic.message}")


class ConfigInvalid(RepoFetchError):
    """Raised when configuration values contradict each other (e.g. maxspeed < minrate)."""


class TransferFailed(RepoFetchError):
    """Raised when a transfer fails. Carries the engine's diagnostic object."""

    def __init__(self, diagnostic: Any):
        self.diagnostic = diagnostic
        super().__init__(f"{diagnostic.message}")


class ConfigurationError(RepoFetchError):
    """Raised for issues related to configuration loading or validation."""
