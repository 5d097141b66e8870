"""
Programs a `SessionHandle` with the remote options of a configuration.

A single routine serves both `ConfigMain` and `ConfigRepo`: it only reads the
field names declared by the `RemoteConfig` protocol.
"""

import logging
from typing import TYPE_CHECKING

from repofetch.engine.base import (
    PROXY_AUTH_METHODS,
    SECRET_OPTIONS,
    EngineOption,
    IpResolve,
    ProxyAuthMethod,
)
from repofetch.exceptions import ConfigInvalid
from repofetch.models.config import RemoteConfig
from repofetch.utils.urlencode import format_user_pass_string

if TYPE_CHECKING:
    from .handle import SessionHandle

log = logging.getLogger(__name__)

SPEED_LIMIT_ERROR = (
    "Maximum download speed is lower than minimum, "
    "please change configuration of minrate or throttle"
)


def compute_maxspeed(throttle: float, bandwidth: int) -> float:
    """
    Returns the effective download ceiling in bytes per second.

    A throttle in (0, 1] is a fraction of `bandwidth`; any other value is used
    as-is, so 0 means unlimited.
    """
    if 0 < throttle <= 1:
        return throttle * bandwidth
    return throttle


def resolve_proxy_auth_method(name: str) -> ProxyAuthMethod:
    """Maps a proxy_auth_method token, warning when it falls back to 'any'."""
    if name not in PROXY_AUTH_METHODS:
        log.warning(
            f"[yellow]Unknown proxy_auth_method '{name}', using 'any'.[/yellow]"
        )
    return ProxyAuthMethod.from_name(name)


def _set(handle: "SessionHandle", option: EngineOption, value) -> None:
    shown = "[hidden]" if option in SECRET_OPTIONS else value
    log.debug(f"Setting {option.name} = {shown}")
    handle.set_opt(option, value)


def init_remote(handle: "SessionHandle", config: RemoteConfig) -> None:
    """
    Applies the network, authentication, TLS and proxy options of `config`.

    Raises:
        ConfigInvalid: If the effective max speed is lower than `minrate`. Neither
        speed option is written in that case.
        OptionRejected: If the engine refuses a value.
    """
    _set(handle, EngineOption.USERAGENT, config.user_agent)

    minrate = config.minrate
    maxspeed = compute_maxspeed(config.throttle, config.bandwidth)
    if maxspeed != 0 and maxspeed < minrate:
        raise ConfigInvalid(SPEED_LIMIT_ERROR)
    _set(handle, EngineOption.LOWSPEEDLIMIT, int(minrate))
    _set(handle, EngineOption.MAXSPEED, int(maxspeed))

    timeout = config.timeout
    if timeout > 0:
        _set(handle, EngineOption.CONNECTTIMEOUT, timeout)
        _set(handle, EngineOption.LOWSPEEDTIME, timeout)

    if config.ip_resolve == "ipv4":
        _set(handle, EngineOption.IPRESOLVE, IpResolve.V4)
    elif config.ip_resolve == "ipv6":
        _set(handle, EngineOption.IPRESOLVE, IpResolve.V6)

    if config.username:
        # TODO: send the URL encoded form once the engine decodes USERPWD like PROXYUSERPWD
        userpwd = format_user_pass_string(config.username, config.password, False)
        _set(handle, EngineOption.USERPWD, userpwd)

    if config.sslcacert:
        _set(handle, EngineOption.SSLCACERT, config.sslcacert)
    if config.sslclientcert:
        _set(handle, EngineOption.SSLCLIENTCERT, config.sslclientcert)
    if config.sslclientkey:
        _set(handle, EngineOption.SSLCLIENTKEY, config.sslclientkey)
    sslverify = 1 if config.sslverify else 0
    _set(handle, EngineOption.SSLVERIFYHOST, sslverify)
    _set(handle, EngineOption.SSLVERIFYPEER, sslverify)

    # Proxy setup
    if config.proxy:
        _set(handle, EngineOption.PROXY, config.proxy)

    proxy_auth_method = resolve_proxy_auth_method(config.proxy_auth_method)
    _set(handle, EngineOption.PROXYAUTHMETHODS, int(proxy_auth_method))

    if config.proxy_username:
        userpwd = format_user_pass_string(
            config.proxy_username, config.proxy_password, True
        )
        _set(handle, EngineOption.PROXYUSERPWD, userpwd)

    if config.proxy_sslcacert:
        _set(handle, EngineOption.PROXY_SSLCACERT, config.proxy_sslcacert)
    if config.proxy_sslclientcert:
        _set(handle, EngineOption.PROXY_SSLCLIENTCERT, config.proxy_sslclientcert)
    if config.proxy_sslclientkey:
        _set(handle, EngineOption.PROXY_SSLCLIENTKEY, config.proxy_sslclientkey)
    proxy_sslverify = 1 if config.proxy_sslverify else 0
    _set(handle, EngineOption.PROXY_SSLVERIFYHOST, proxy_sslverify)
    _set(handle, EngineOption.PROXY_SSLVERIFYPEER, proxy_sslverify)
