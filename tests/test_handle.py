"""Ownership tests for SessionHandle and SessionResult.

Every engine object must be freed exactly once, whatever sequence of moves
and releases the caller goes through.
"""

import copy
import pickle

import pytest

from repofetch.engine.base import EngineDiagnostic, EngineOption
from repofetch.exceptions import AllocationFailed, OptionRejected, TransferFailed
from repofetch.remote.handle import SessionHandle, SessionResult


class TestAllocation:
    def test_handle_owns_fresh_session(self, engine):
        handle = SessionHandle(engine)
        assert handle
        assert handle.get() is engine.allocated_sessions[0]

    def test_session_allocation_failure(self, engine):
        engine.fail_session_alloc = True
        with pytest.raises(AllocationFailed):
            SessionHandle(engine)
        assert engine.freed_sessions == []

    def test_result_allocation_failure(self, engine):
        engine.fail_result_alloc = True
        with pytest.raises(AllocationFailed):
            SessionResult(engine)


class TestMoveSemantics:
    def test_take_then_release_both_frees_once(self, engine):
        source = SessionHandle(engine)
        dest = source.take()
        assert not source
        assert dest.get() is engine.allocated_sessions[0]

        source.close()
        assert engine.freed_sessions == []
        dest.close()
        assert engine.freed_sessions == [0]

    def test_assign_releases_previous_object_first(self, engine):
        first = SessionHandle(engine)
        second = SessionHandle(engine)

        first.assign(second)
        assert engine.freed_sessions == [0]
        assert first.get() is engine.allocated_sessions[1]
        assert not second

        second.close()
        first.close()
        assert engine.freed_sessions == [0, 1]

    def test_self_assignment_is_a_no_op(self, engine):
        handle = SessionHandle(engine)
        handle.assign(handle)
        assert handle
        assert engine.freed_sessions == []

    def test_assign_refuses_other_wrapper_kind(self, engine):
        handle = SessionHandle(engine)
        result = SessionResult(engine)
        with pytest.raises(TypeError):
            handle.assign(result)
        assert handle.get() is engine.allocated_sessions[0]
        assert result.get() is engine.allocated_results[0]
        assert engine.freed_sessions == []

    def test_result_move(self, engine):
        result = SessionResult(engine)
        moved = result.take()
        del result
        moved.close()
        moved.close()
        assert engine.freed_results == [0]

    def test_collection_releases(self, engine):
        handle = SessionHandle(engine)
        del handle
        assert engine.freed_sessions == [0]

    def test_context_manager_releases(self, engine):
        with SessionHandle(engine) as handle:
            assert handle
        assert engine.freed_sessions == [0]
        assert not handle

    @pytest.mark.parametrize("duplicate", [copy.copy, copy.deepcopy, pickle.dumps])
    def test_copying_is_forbidden(self, engine, duplicate):
        handle = SessionHandle(engine)
        with pytest.raises(TypeError):
            duplicate(handle)


class TestSetOpt:
    def test_forwards_to_engine(self, engine):
        handle = SessionHandle(engine)
        handle.set_opt(EngineOption.USERAGENT, "agent/1.0")
        assert handle.get().options[EngineOption.USERAGENT] == "agent/1.0"

    def test_rejection_keeps_engine_diagnostic(self, engine):
        engine.reject_options.add(EngineOption.PROXY)
        handle = SessionHandle(engine)
        with pytest.raises(OptionRejected) as exc_info:
            handle.set_opt(EngineOption.PROXY, "socks5://proxy")
        assert exc_info.value.option is EngineOption.PROXY
        assert exc_info.value.diagnostic.message == "rejected PROXY"
        assert str(exc_info.value) == "rejected PROXY"

    def test_released_handle_refuses_options(self, engine):
        handle = SessionHandle(engine)
        handle.take()
        with pytest.raises(ValueError):
            handle.set_opt(EngineOption.USERAGENT, "x")


class TestPerform:
    def test_returns_owned_result(self, engine):
        handle = SessionHandle(engine)
        with handle.perform() as result:
            assert isinstance(result, SessionResult)
            assert result.get().performed
        assert engine.freed_results == [0]

    def test_failure_releases_result_and_carries_diagnostic(self, engine):
        diagnostic = EngineDiagnostic(code="http_404", message="Status code: 404")
        engine.perform_error = diagnostic
        handle = SessionHandle(engine)
        with pytest.raises(TransferFailed) as exc_info:
            handle.perform()
        assert exc_info.value.diagnostic is diagnostic
        assert engine.freed_results == [0]

    def test_unexpected_error_still_releases_result(self, engine):
        engine.perform_exception = RuntimeError("progress callback blew up")
        handle = SessionHandle(engine)
        with pytest.raises(RuntimeError, match="progress callback"):
            handle.perform()
        assert engine.freed_results == [0]

    def test_result_allocation_failure_is_reported(self, engine):
        engine.fail_result_alloc = True
        handle = SessionHandle(engine)
        with pytest.raises(AllocationFailed):
            handle.perform()
