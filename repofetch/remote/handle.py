"""
Owning wrappers around the engine's session and result objects.

Each wrapper is the exclusive owner of one engine object. Ownership moves with
`take()` and `assign()`, never by copying, and the object is released exactly
once: by `close()`, by leaving a `with` block, or when the wrapper is collected.
"""

import logging
from typing import Any

from repofetch.engine.base import EngineError, EngineOption, TransferEngine
from repofetch.exceptions import AllocationFailed, OptionRejected, TransferFailed

log = logging.getLogger(__name__)


def _default_engine() -> TransferEngine:
    from repofetch.engine.aiohttp_engine import AiohttpEngine

    return AiohttpEngine()


class _EngineObjectOwner:
    """Shared move-only ownership logic for engine-allocated objects."""

    _kind = "object"

    def __init__(self, engine: TransferEngine):
        self._engine = engine
        self._obj = self._allocate()
        if self._obj is None:
            raise AllocationFailed(f"Transfer engine failed to allocate a {self._kind}.")

    def _allocate(self) -> Any | None:
        raise NotImplementedError

    def _release(self, obj: Any) -> None:
        raise NotImplementedError

    @classmethod
    def _adopt(cls, engine: TransferEngine, obj: Any):
        """Builds a wrapper around an already allocated object without allocating."""
        owner = cls.__new__(cls)
        owner._engine = engine
        owner._obj = obj
        return owner

    @property
    def engine(self) -> TransferEngine:
        return self._engine

    def get(self) -> Any | None:
        """Returns the owned engine object, or None for a moved-from wrapper."""
        return self._obj

    def __bool__(self) -> bool:
        return self._obj is not None

    def take(self):
        """Moves ownership into a new wrapper, leaving this one empty."""
        obj, self._obj = self._obj, None
        return self._adopt(self._engine, obj)

    def assign(self, other) -> None:
        """Releases the currently owned object and takes ownership from `other`."""
        if type(other) is not type(self):
            raise TypeError(
                f"Cannot assign {type(other).__name__} to {type(self).__name__}."
            )
        if other is self:
            return
        self.close()
        self._engine = other._engine
        self._obj, other._obj = other._obj, None

    def close(self) -> None:
        """Releases the owned object. Safe to call more than once."""
        obj, self._obj = getattr(self, "_obj", None), None
        if obj is not None:
            self._release(obj)

    def _require(self) -> Any:
        if self._obj is None:
            raise ValueError(f"Operation on a released {self._kind} wrapper.")
        return self._obj

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __del__(self):
        self.close()

    def __copy__(self):
        raise TypeError(f"{type(self).__name__} cannot be copied; use take() instead.")

    def __deepcopy__(self, memo):
        raise TypeError(f"{type(self).__name__} cannot be copied; use take() instead.")

    def __reduce__(self):
        raise TypeError(f"{type(self).__name__} cannot be pickled.")

    def __repr__(self) -> str:
        state = "empty" if self._obj is None else "owned"
        return f"<{type(self).__name__} {state}>"


class SessionResult(_EngineObjectOwner):
    """Exclusive owner of an engine result object."""

    _kind = "result"

    def __init__(self, engine: TransferEngine | None = None):
        super().__init__(engine or _default_engine())

    def _allocate(self) -> Any | None:
        return self._engine.new_result()

    def _release(self, obj: Any) -> None:
        self._engine.free_result(obj)


class SessionHandle(_EngineObjectOwner):
    """Exclusive owner of an engine session object."""

    _kind = "session"

    def __init__(self, engine: TransferEngine | None = None):
        super().__init__(engine or _default_engine())

    def _allocate(self) -> Any | None:
        return self._engine.new_session()

    def _release(self, obj: Any) -> None:
        self._engine.free_session(obj)

    def set_opt(self, option: EngineOption, value: Any) -> None:
        """
        Sets a single engine option.

        Raises:
            OptionRejected: If the engine refuses the value. The engine's
            diagnostic is attached unchanged.
        """
        session = self._require()
        try:
            self._engine.set_option(session, option, value)
        except EngineError as e:
            raise OptionRejected(option, e.diagnostic) from e

    def configure(self, config) -> None:
        """Applies all network, authentication, TLS and proxy options from `config`."""
        from .configure import init_remote

        init_remote(self, config)

    def perform(self) -> SessionResult:
        """
        Runs the transfer and returns its result.

        Raises:
            TransferFailed: If the engine reports a failure. No result is produced.
        """
        session = self._require()
        result = SessionResult(self._engine)
        try:
            self._engine.perform(session, result.get())
        except EngineError as e:
            result.close()
            log.debug(f"Transfer failed: {e.diagnostic}")
            raise TransferFailed(e.diagnostic) from e
        except BaseException:
            result.close()
            raise
        return result
