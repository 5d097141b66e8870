"""Shared test fixtures for the repofetch test suite.

FakeEngine is a test double for a transfer engine: it hands out numbered
sessions and results, records every option set on them, counts frees, and can
be told to refuse allocations, options or transfers.
"""

import asyncio
import threading
from dataclasses import dataclass, field
from typing import Any

import pytest
from aiohttp import test_utils, web

from repofetch.engine.base import EngineDiagnostic, EngineError, EngineOption
from repofetch.models.config import ConfigMain


@dataclass
class FakeSession:
    ident: int
    options: dict[EngineOption, Any] = field(default_factory=dict)
    history: list[tuple[EngineOption, Any]] = field(default_factory=list)


@dataclass
class FakeResult:
    ident: int
    performed: bool = False


@dataclass
class FakeEngine:
    fail_session_alloc: bool = False
    fail_result_alloc: bool = False
    reject_options: set[EngineOption] = field(default_factory=set)
    perform_error: EngineDiagnostic | None = None
    perform_exception: Exception | None = None

    allocated_sessions: list[FakeSession] = field(default_factory=list)
    allocated_results: list[FakeResult] = field(default_factory=list)
    freed_sessions: list[int] = field(default_factory=list)
    freed_results: list[int] = field(default_factory=list)

    def new_session(self):
        if self.fail_session_alloc:
            return None
        session = FakeSession(ident=len(self.allocated_sessions))
        self.allocated_sessions.append(session)
        return session

    def free_session(self, session):
        self.freed_sessions.append(session.ident)

    def new_result(self):
        if self.fail_result_alloc:
            return None
        result = FakeResult(ident=len(self.allocated_results))
        self.allocated_results.append(result)
        return result

    def free_result(self, result):
        self.freed_results.append(result.ident)

    def set_option(self, session, option, value):
        if option in self.reject_options:
            raise EngineError(
                EngineDiagnostic(code="bad_option", message=f"rejected {option.name}")
            )
        session.options[option] = value
        session.history.append((option, value))

    def perform(self, session, result):
        if self.perform_exception is not None:
            raise self.perform_exception
        if self.perform_error is not None:
            raise EngineError(self.perform_error)
        result.performed = True


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def main_config() -> ConfigMain:
    """A global config with speed checks disabled and nothing optional set."""
    return ConfigMain(minrate=0, timeout=0)


class ServerThread:
    """Runs an aiohttp test server on its own event loop in a background thread.

    Lets blocking code such as `SessionHandle.perform()` or the CLI talk to a
    local server from the test's own thread.
    """

    def __init__(self, app: web.Application):
        self.app = app
        self.loop = asyncio.new_event_loop()
        self.thread = threading.Thread(target=self.loop.run_forever, daemon=True)
        self.server: test_utils.TestServer | None = None

    def _call(self, coro):
        return asyncio.run_coroutine_threadsafe(coro, self.loop).result(timeout=10)

    async def _start(self):
        self.server = test_utils.TestServer(self.app)
        await self.server.start_server()

    def start(self) -> "ServerThread":
        self.thread.start()
        self._call(self._start())
        return self

    def url(self, path: str) -> str:
        return str(self.server.make_url(path))

    def stop(self) -> None:
        if self.server is not None:
            self._call(self.server.close())
        self.loop.call_soon_threadsafe(self.loop.stop)
        self.thread.join(timeout=10)
        self.loop.close()


@pytest.fixture
def serve():
    """Starts `ServerThread`s on demand and stops them after the test."""
    servers: list[ServerThread] = []

    def _serve(app: web.Application) -> ServerThread:
        server = ServerThread(app).start()
        servers.append(server)
        return server

    yield _serve
    for server in servers:
        server.stop()
