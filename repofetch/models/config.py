"""
Pydantic models for the global and per-repository configuration.
Provides robust validation and coercion of the remote (network) options.
"""

import re
from typing import Any, Protocol

from pydantic import BaseModel, Field, field_validator

# Suffix multipliers accepted by size-like options ("10k", "1.5M")
SIZE_UNITS = {
    "": 1,
    "k": 1024,
    "m": 1024**2,
    "g": 1024**3,
}

_SIZE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([kKmMgG]?)\s*$")

# Option names shared by ConfigMain and ConfigRepo that the configurator reads
REMOTE_OPTION_NAMES = (
    "user_agent",
    "minrate",
    "throttle",
    "bandwidth",
    "timeout",
    "ip_resolve",
    "username",
    "password",
    "sslcacert",
    "sslclientcert",
    "sslclientkey",
    "sslverify",
    "proxy",
    "proxy_auth_method",
    "proxy_username",
    "proxy_password",
    "proxy_sslcacert",
    "proxy_sslclientcert",
    "proxy_sslclientkey",
    "proxy_sslverify",
)


def str_to_bytes(value: str) -> float:
    """Converts a size string such as '100', '10k' or '1.5M' into bytes."""
    match = _SIZE_RE.match(value)
    if not match:
        raise ValueError(f"Could not convert '{value}' to bytes.")
    number, unit = match.groups()
    return float(number) * SIZE_UNITS[unit.lower()]


class RemoteConfig(Protocol):
    """
    The capability set the remote configurator relies on.

    Optional string fields (`proxy`, `proxy_username`) are None when unset.
    """

    user_agent: str
    minrate: int
    throttle: float
    bandwidth: int
    timeout: int
    ip_resolve: str
    username: str
    password: str
    sslcacert: str
    sslclientcert: str
    sslclientkey: str
    sslverify: bool
    proxy: str | None
    proxy_auth_method: str
    proxy_username: str | None
    proxy_password: str
    proxy_sslcacert: str
    proxy_sslclientcert: str
    proxy_sslclientkey: str
    proxy_sslverify: bool


class _RemoteOptions(BaseModel):
    """Network, authentication, TLS and proxy options common to both configs."""

    user_agent: str = "repofetch"

    # Speed and timeouts
    minrate: int = Field(default=1000, ge=0)
    throttle: float = Field(default=0.0, ge=0)
    bandwidth: int = Field(default=0, ge=0)
    timeout: int = 30
    ip_resolve: str = "whatever"

    # Authentication
    username: str = ""
    password: str = Field(default="", repr=False)

    # TLS
    sslcacert: str = ""
    sslclientcert: str = ""
    sslclientkey: str = ""
    sslverify: bool = True

    # Proxy
    proxy: str | None = None
    proxy_auth_method: str = "any"
    proxy_username: str | None = None
    proxy_password: str = Field(default="", repr=False)
    proxy_sslcacert: str = ""
    proxy_sslclientcert: str = ""
    proxy_sslclientkey: str = ""
    proxy_sslverify: bool = True

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("minrate", "bandwidth", mode="before")
    @classmethod
    def parse_size(cls, v: Any) -> Any:
        """Accepts size suffixes (k, M, G) on byte-rate options."""
        if isinstance(v, str):
            return int(str_to_bytes(v))
        return v

    @field_validator("throttle", mode="before")
    @classmethod
    def parse_throttle(cls, v: Any) -> Any:
        """
        Accepts either a percentage of `bandwidth` ('50%' -> 0.5) or an
        absolute rate with an optional size suffix.
        """
        if isinstance(v, str):
            v = v.strip()
            if v.endswith("%"):
                percent = float(v[:-1])
                if not 0 <= percent <= 100:
                    raise ValueError("Throttle percentage must be between 0 and 100.")
                return percent / 100
            return str_to_bytes(v)
        return v

    @field_validator("ip_resolve")
    @classmethod
    def normalize_ip_resolve(cls, v: str) -> str:
        """Lower-cases the value; 'ipv4'/'ipv6' are recognized, anything else is default."""
        return v.lower()


class ConfigMain(_RemoteOptions):
    """The global configuration, read from the `[main]` section."""


class ConfigRepo(_RemoteOptions):
    """The configuration of a single repository."""

    id: str
    name: str = ""
    baseurl: list[str] = Field(default_factory=list)
    enabled: bool = True

    @field_validator("baseurl", mode="before")
    @classmethod
    def split_baseurl(cls, v: Any) -> Any:
        """Accepts whitespace or comma separated URL lists from INI files."""
        if isinstance(v, str):
            return [u for u in re.split(r"[\s,]+", v) if u]
        return v

    @classmethod
    def from_main(
        cls, main: ConfigMain, repo_id: str, **overrides: Any
    ) -> "ConfigRepo":
        """
        Creates a repository config that inherits the remote options of `main`.

        Values in `overrides` take precedence over the inherited ones.
        """
        inherited = {name: getattr(main, name) for name in REMOTE_OPTION_NAMES}
        return cls(**{**inherited, **overrides, "id": repo_id})
