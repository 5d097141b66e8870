"""
The contract between the session wrappers and a transfer engine.

An engine hands out opaque session and result objects together with explicit
release functions; `repofetch.remote.handle` wraps them with exclusive ownership.
"""

from dataclasses import dataclass
from enum import Enum, IntEnum, IntFlag
from typing import Any, Protocol


class EngineOption(str, Enum):
    """Option identifiers understood by a transfer engine."""

    USERAGENT = "useragent"
    LOWSPEEDLIMIT = "lowspeedlimit"
    MAXSPEED = "maxspeed"
    CONNECTTIMEOUT = "connecttimeout"
    LOWSPEEDTIME = "lowspeedtime"
    IPRESOLVE = "ipresolve"
    USERPWD = "userpwd"
    SSLCACERT = "sslcacert"
    SSLCLIENTCERT = "sslclientcert"
    SSLCLIENTKEY = "sslclientkey"
    SSLVERIFYHOST = "sslverifyhost"
    SSLVERIFYPEER = "sslverifypeer"
    PROXY = "proxy"
    PROXYAUTHMETHODS = "proxyauthmethods"
    PROXYUSERPWD = "proxyuserpwd"
    PROXY_SSLCACERT = "proxy_sslcacert"
    PROXY_SSLCLIENTCERT = "proxy_sslclientcert"
    PROXY_SSLCLIENTKEY = "proxy_sslclientkey"
    PROXY_SSLVERIFYHOST = "proxy_sslverifyhost"
    PROXY_SSLVERIFYPEER = "proxy_sslverifypeer"

    # Transfer description, set directly by callers
    URLS = "urls"
    DESTDIR = "destdir"
    HTTPHEADER = "httpheader"
    PROGRESSCB = "progresscb"


# Options whose values are credentials and must never be displayed
SECRET_OPTIONS = frozenset({EngineOption.USERPWD, EngineOption.PROXYUSERPWD})


class IpResolve(IntEnum):
    WHATEVER = 0
    V4 = 1
    V6 = 2


class ProxyAuthMethod(IntFlag):
    """Proxy authentication methods, as a bitmask."""

    NONE = 0
    BASIC = 1
    DIGEST = 2
    NEGOTIATE = 4
    NTLM = 8
    DIGEST_IE = 16
    NTLM_WB = 32
    ANY = BASIC | DIGEST | NEGOTIATE | NTLM | NTLM_WB

    @classmethod
    def from_name(cls, name: str) -> "ProxyAuthMethod":
        """Maps a configuration token to a method, falling back to ANY."""
        return PROXY_AUTH_METHODS.get(name, cls.ANY)


# Maps config option proxy_auth_method to the engine value
PROXY_AUTH_METHODS = {
    "none": ProxyAuthMethod.NONE,
    "basic": ProxyAuthMethod.BASIC,
    "digest": ProxyAuthMethod.DIGEST,
    "negotiate": ProxyAuthMethod.NEGOTIATE,
    "ntlm": ProxyAuthMethod.NTLM,
    "digest_ie": ProxyAuthMethod.DIGEST_IE,
    "ntlm_wb": ProxyAuthMethod.NTLM_WB,
    "any": ProxyAuthMethod.ANY,
}


@dataclass(frozen=True)
class EngineDiagnostic:
    """The engine's description of a failure."""

    code: str
    message: str
    domain: str = "engine"

    def __str__(self) -> str:
        return f"{self.domain}: {self.message} ({self.code})"


class EngineError(Exception):
    """Raised by engines. Carries exactly one `EngineDiagnostic`."""

    def __init__(self, diagnostic: EngineDiagnostic):
        self.diagnostic = diagnostic
        super().__init__(diagnostic.message)


class TransferEngine(Protocol):
    """
    The operations a transfer engine exposes.

    `new_session` and `new_result` return None when allocation fails.
    `set_option` and `perform` raise `EngineError`.
    """

    def new_session(self) -> Any | None: ...

    def free_session(self, session: Any) -> None: ...

    def set_option(self, session: Any, option: EngineOption, value: Any) -> None: ...

    def new_result(self) -> Any | None: ...

    def free_result(self, result: Any) -> None: ...

    def perform(self, session: Any, result: Any) -> None: ...
