"""
The default transfer engine: downloads files over HTTP(S) with aiohttp.

Sessions are plain option maps that are validated as they are set; `perform`
turns them into an aiohttp `ClientSession` and fetches every URL in turn.
"""

import asyncio
import logging
import os
import socket
import ssl
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlsplit

import aiofiles
import aiohttp

from repofetch.models.stats import TransferStats

from .base import (
    SECRET_OPTIONS,
    EngineDiagnostic,
    EngineError,
    EngineOption,
    IpResolve,
    ProxyAuthMethod,
)

log = logging.getLogger(__name__)

DOMAIN = "aiohttp"
CHUNK_SIZE = 131072  # 128 KB

DEFAULT_OPTIONS: dict[EngineOption, Any] = {
    EngineOption.USERAGENT: "",
    EngineOption.LOWSPEEDLIMIT: 1000,
    EngineOption.LOWSPEEDTIME: 30,
    EngineOption.CONNECTTIMEOUT: 30,
    EngineOption.MAXSPEED: 0,
    EngineOption.IPRESOLVE: IpResolve.WHATEVER,
    EngineOption.SSLVERIFYHOST: 1,
    EngineOption.SSLVERIFYPEER: 1,
    EngineOption.PROXYAUTHMETHODS: ProxyAuthMethod.ANY,
    EngineOption.PROXY_SSLVERIFYHOST: 1,
    EngineOption.PROXY_SSLVERIFYPEER: 1,
    EngineOption.URLS: (),
    EngineOption.HTTPHEADER: (),
}

_ADDRESS_FAMILIES = {
    IpResolve.WHATEVER: socket.AF_UNSPEC,
    IpResolve.V4: socket.AF_INET,
    IpResolve.V6: socket.AF_INET6,
}


def _error(code: str, message: str) -> EngineError:
    return EngineError(EngineDiagnostic(code=code, message=message, domain=DOMAIN))


@dataclass
class RemoteSession:
    """The engine-side state of one session: the options set so far."""

    options: dict[EngineOption, Any] = field(
        default_factory=lambda: dict(DEFAULT_OPTIONS)
    )

    def get(self, option: EngineOption) -> Any:
        return self.options.get(option)


@dataclass
class DownloadedFile:
    url: str
    path: Path
    size: int


@dataclass
class TransferResult:
    """Outcome of a completed transfer."""

    files: list[DownloadedFile] = field(default_factory=list)
    stats: TransferStats = field(default_factory=TransferStats)


# Value checks, one per option. Each returns the normalized value or raises ValueError.


def _string(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError("expected a string")
    return value


def _non_negative(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError("expected a non-negative integer")
    return value


def _switch(value: Any) -> int:
    if value not in (0, 1):
        raise ValueError("expected 0 or 1")
    return int(value)


def _ip_resolve(value: Any) -> IpResolve:
    return IpResolve(value)


def _proxy_url(value: Any) -> str:
    scheme = urlsplit(_string(value)).scheme.lower()
    if scheme not in ("http", "https"):
        raise ValueError(f"unsupported proxy scheme '{scheme}'")
    return value


_KNOWN_AUTH_BITS = int(ProxyAuthMethod.ANY | ProxyAuthMethod.DIGEST_IE)


def _proxy_auth(value: Any) -> ProxyAuthMethod:
    value = _non_negative(int(value))
    if value & ~_KNOWN_AUTH_BITS:
        raise ValueError("unknown authentication bits")
    return ProxyAuthMethod(value)


def _urls(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        value = [value]
    return tuple(_string(url) for url in value)


def _destdir(value: Any) -> Path:
    if not isinstance(value, (str, os.PathLike)):
        raise ValueError("expected a path")
    return Path(value)


def _headers(value: Any) -> tuple[str, ...]:
    headers = tuple(_string(h) for h in value)
    for header in headers:
        if ":" not in header:
            raise ValueError(f"malformed header '{header}'")
    return headers


def _callback(value: Any) -> Callable[[int, int], None] | None:
    if value is not None and not callable(value):
        raise ValueError("expected a callable")
    return value


_VALIDATORS: dict[EngineOption, Callable[[Any], Any]] = {
    EngineOption.USERAGENT: _string,
    EngineOption.LOWSPEEDLIMIT: _non_negative,
    EngineOption.MAXSPEED: _non_negative,
    EngineOption.CONNECTTIMEOUT: _non_negative,
    EngineOption.LOWSPEEDTIME: _non_negative,
    EngineOption.IPRESOLVE: _ip_resolve,
    EngineOption.USERPWD: _string,
    EngineOption.SSLCACERT: _string,
    EngineOption.SSLCLIENTCERT: _string,
    EngineOption.SSLCLIENTKEY: _string,
    EngineOption.SSLVERIFYHOST: _switch,
    EngineOption.SSLVERIFYPEER: _switch,
    EngineOption.PROXY: _proxy_url,
    EngineOption.PROXYAUTHMETHODS: _proxy_auth,
    EngineOption.PROXYUSERPWD: _string,
    EngineOption.PROXY_SSLCACERT: _string,
    EngineOption.PROXY_SSLCLIENTCERT: _string,
    EngineOption.PROXY_SSLCLIENTKEY: _string,
    EngineOption.PROXY_SSLVERIFYHOST: _switch,
    EngineOption.PROXY_SSLVERIFYPEER: _switch,
    EngineOption.URLS: _urls,
    EngineOption.DESTDIR: _destdir,
    EngineOption.HTTPHEADER: _headers,
    EngineOption.PROGRESSCB: _callback,
}


def _split_userpwd(userpwd: str | None, decode: bool) -> aiohttp.BasicAuth | None:
    """Splits 'user:password' at the first colon, optionally URL decoding both parts."""
    if not userpwd:
        return None
    user, _, password = userpwd.partition(":")
    if decode:
        user, password = unquote(user), unquote(password)
    # Credentials go on the wire as UTF-8 bytes, not latin-1
    return aiohttp.BasicAuth(user, password, encoding="utf-8")


def _proxy_credentials(opts: dict[EngineOption, Any]) -> aiohttp.BasicAuth | None:
    """Basic credentials for the proxy, if a proxy is set and may use basic auth."""
    if not opts.get(EngineOption.PROXY) or not opts.get(EngineOption.PROXYUSERPWD):
        return None
    if not opts[EngineOption.PROXYAUTHMETHODS] & ProxyAuthMethod.BASIC:
        log.debug("Proxy credentials ignored: basic auth is not allowed.")
        return None
    return _split_userpwd(opts[EngineOption.PROXYUSERPWD], decode=True)


def _apply_verification(ctx: ssl.SSLContext, verify_host: int, verify_peer: int):
    # Hostname checking requires peer verification in the ssl module
    if not verify_host or not verify_peer:
        ctx.check_hostname = False
    if not verify_peer:
        ctx.verify_mode = ssl.CERT_NONE


class _LowSpeedGuard:
    """Aborts a transfer whose throughput stays below `limit` for `period` seconds."""

    def __init__(self, limit: int, period: int):
        self.limit = limit
        self.period = period
        self._window_start = time.monotonic()
        self._window_bytes = 0

    def feed(self, nbytes: int) -> None:
        if not self.limit or not self.period:
            return
        self._window_bytes += nbytes
        now = time.monotonic()
        elapsed = now - self._window_start
        if elapsed >= self.period:
            if self._window_bytes / elapsed < self.limit:
                raise _error(
                    "operation_timedout",
                    f"Operation too slow. Less than {self.limit} bytes/sec "
                    f"transferred the last {self.period} seconds",
                )
            self._window_start = now
            self._window_bytes = 0


class AiohttpEngine:
    """A `TransferEngine` backed by aiohttp and aiofiles."""

    def new_session(self) -> RemoteSession:
        return RemoteSession()

    def free_session(self, session: RemoteSession) -> None:
        session.options.clear()

    def new_result(self) -> TransferResult:
        return TransferResult()

    def free_result(self, result: TransferResult) -> None:
        result.files.clear()

    def set_option(self, session: RemoteSession, option: EngineOption, value: Any) -> None:
        """Validates and stores an option value, raising `EngineError` on bad input."""
        validator = _VALIDATORS.get(option)
        if validator is None:
            raise _error("unknown_option", f"Unknown option: {option!r}")
        try:
            session.options[option] = validator(value)
        except (TypeError, ValueError) as e:
            shown = "" if option in SECRET_OPTIONS else f" {value!r}"
            raise _error(
                "bad_option", f"Bad value{shown} for option {option.name}: {e}"
            ) from e

    def perform(self, session: RemoteSession, result: TransferResult) -> None:
        """Runs the transfer, blocking the calling thread until it completes."""
        asyncio.run(self.perform_async(session, result))

    def build_ssl_context(self, session: RemoteSession) -> ssl.SSLContext:
        """
        Builds the TLS context used for both the origin and the proxy.

        aiohttp applies one context per connection, so the proxy's CA bundle is
        added to the trust store and its client certificate is used only when
        the origin has none.
        """
        opts = session.options
        ctx = ssl.create_default_context(cafile=opts.get(EngineOption.SSLCACERT) or None)
        _apply_verification(
            ctx, opts[EngineOption.SSLVERIFYHOST], opts[EngineOption.SSLVERIFYPEER]
        )
        if opts.get(EngineOption.SSLCLIENTCERT):
            ctx.load_cert_chain(
                opts[EngineOption.SSLCLIENTCERT],
                opts.get(EngineOption.SSLCLIENTKEY) or None,
            )

        proxy = opts.get(EngineOption.PROXY)
        if proxy and urlsplit(proxy).scheme.lower() == "https":
            if opts.get(EngineOption.PROXY_SSLCACERT):
                ctx.load_verify_locations(cafile=opts[EngineOption.PROXY_SSLCACERT])
            if opts.get(EngineOption.PROXY_SSLCLIENTCERT) and not opts.get(
                EngineOption.SSLCLIENTCERT
            ):
                ctx.load_cert_chain(
                    opts[EngineOption.PROXY_SSLCLIENTCERT],
                    opts.get(EngineOption.PROXY_SSLCLIENTKEY) or None,
                )
            proxy_verify = (
                opts[EngineOption.PROXY_SSLVERIFYHOST],
                opts[EngineOption.PROXY_SSLVERIFYPEER],
            )
            if proxy_verify != (1, 1) and ctx.verify_mode != ssl.CERT_NONE:
                log.warning(
                    "[yellow]Proxy TLS verification cannot be relaxed separately "
                    "from the origin; keeping verification enabled.[/yellow]"
                )
        return ctx

    async def perform_async(
        self, session: RemoteSession, result: TransferResult
    ) -> None:
        """Downloads every URL of the session into its destination directory."""
        opts = session.options
        urls = opts.get(EngineOption.URLS)
        if not urls:
            raise _error("no_urls", "No URLs specified")
        destdir = opts.get(EngineOption.DESTDIR) or Path.cwd()

        try:
            ssl_context = self.build_ssl_context(session)
            await asyncio.to_thread(destdir.mkdir, parents=True, exist_ok=True)
        except (OSError, ssl.SSLError) as e:
            raise _error("setup", f"Cannot prepare transfer: {e}") from e

        connector = aiohttp.TCPConnector(
            family=_ADDRESS_FAMILIES[opts[EngineOption.IPRESOLVE]],
            ssl=ssl_context,
        )
        lowspeedtime = opts[EngineOption.LOWSPEEDTIME]
        timeout = aiohttp.ClientTimeout(
            total=None,
            sock_connect=opts[EngineOption.CONNECTTIMEOUT] or None,
            sock_read=lowspeedtime if opts[EngineOption.LOWSPEEDLIMIT] else None,
        )
        headers = {}
        if opts[EngineOption.USERAGENT]:
            headers["User-Agent"] = opts[EngineOption.USERAGENT]
        for header in opts[EngineOption.HTTPHEADER]:
            name, _, value = header.partition(":")
            headers[name.strip()] = value.strip()

        proxy_auth = _proxy_credentials(opts)

        try:
            async with aiohttp.ClientSession(
                connector=connector,
                timeout=timeout,
                headers=headers,
                auth=_split_userpwd(opts.get(EngineOption.USERPWD), decode=False),
            ) as client:
                for url in urls:
                    downloaded = await self._download(
                        client, url, destdir, session, proxy_auth, result.stats
                    )
                    result.files.append(downloaded)
                    result.stats.files_downloaded += 1
        except aiohttp.ClientResponseError as e:
            raise _error(
                f"http_{e.status}", f"Status code: {e.status} for {e.request_info.real_url}"
            ) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise _error("connection", f"{type(e).__name__}: {e}") from e
        except OSError as e:
            raise _error("io", f"Cannot write downloaded data: {e}") from e
        except ValueError as e:
            raise _error("bad_request", f"Cannot build request: {e}") from e

    async def _download(
        self,
        client: aiohttp.ClientSession,
        url: str,
        destdir: Path,
        session: RemoteSession,
        proxy_auth: aiohttp.BasicAuth | None,
        stats: TransferStats,
    ) -> DownloadedFile:
        opts = session.options
        name = os.path.basename(urlsplit(url).path) or "index.html"
        destination = destdir / name
        maxspeed = opts[EngineOption.MAXSPEED]
        progress_cb = opts.get(EngineOption.PROGRESSCB)

        async with client.get(
            url,
            proxy=opts.get(EngineOption.PROXY) or None,
            proxy_auth=proxy_auth,
            allow_redirects=True,
        ) as response:
            response.raise_for_status()
            guard = _LowSpeedGuard(
                opts[EngineOption.LOWSPEEDLIMIT], opts[EngineOption.LOWSPEEDTIME]
            )
            total = int(response.headers.get("Content-Length", 0))
            log.debug(f"Downloading '{url}' to '{destination}' ({total} bytes)")

            bytes_downloaded = 0
            started = time.monotonic()
            async with aiofiles.open(destination, "wb") as f:
                async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                    await f.write(chunk)
                    bytes_downloaded += len(chunk)
                    stats.total_size_downloaded += len(chunk)
                    stats.update_speed_stats(stats.total_size_downloaded)
                    guard.feed(len(chunk))

                    if progress_cb is not None:
                        progress_cb(total, bytes_downloaded)

                    if maxspeed:
                        ahead = bytes_downloaded / maxspeed - (time.monotonic() - started)
                        if ahead > 0:
                            await asyncio.sleep(ahead)

        return DownloadedFile(url=url, path=destination, size=bytes_downloaded)
