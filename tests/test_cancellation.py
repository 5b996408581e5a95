"""
Tests for CancellationToken and SessionManager.

Test plan:
- cancel() is idempotent, first reason sticks
- run(): Ok when the awaitable wins, Cancelled when the token wins,
  losing awaitable is cancelled, exceptions propagate
- run() on an already-cancelled token never starts the awaitable
- guard(): raises Aborted on cancellation
- SessionManager: new session cancels the previous token synchronously
"""

import asyncio

import pytest

from relay_signer.cancellation import (
    ABORTED,
    Cancelled,
    CancellationToken,
    Ok,
    SessionManager,
)
from relay_signer.errors import Aborted


async def _value_after(delay: float, value: object) -> object:
    await asyncio.sleep(delay)
    return value


class TestCancel:
    def test_starts_pending(self) -> None:
        token = CancellationToken()
        assert not token.cancelled
        assert token.reason is None

    def test_cancel_once(self) -> None:
        token = CancellationToken()
        assert token.cancel("first") is True
        assert token.cancelled
        assert token.reason == "first"

    def test_second_cancel_is_noop(self) -> None:
        token = CancellationToken()
        token.cancel("first")
        assert token.cancel("second") is False
        assert token.reason == "first"

    def test_default_reason(self) -> None:
        token = CancellationToken()
        token.cancel()
        assert token.reason == ABORTED

    @pytest.mark.asyncio
    async def test_wait_returns_reason(self) -> None:
        token = CancellationToken()
        asyncio.get_running_loop().call_later(0.01, token.cancel, "stop")
        assert await token.wait() == "stop"


class TestRun:
    @pytest.mark.asyncio
    async def test_ok_when_awaitable_wins(self) -> None:
        token = CancellationToken()
        outcome = await token.run(_value_after(0, "done"))
        assert outcome == Ok("done")

    @pytest.mark.asyncio
    async def test_cancelled_when_token_wins(self) -> None:
        token = CancellationToken()
        asyncio.get_running_loop().call_later(0.01, token.cancel, "superseded")
        outcome = await token.run(_value_after(10, "late"))
        assert outcome == Cancelled("superseded")

    @pytest.mark.asyncio
    async def test_loser_is_cancelled(self) -> None:
        token = CancellationToken()
        observed: list[str] = []

        async def slow() -> None:
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                observed.append("cancelled")
                raise

        asyncio.get_running_loop().call_later(0.01, token.cancel)
        await token.run(slow())
        await asyncio.sleep(0)
        assert observed == ["cancelled"]

    @pytest.mark.asyncio
    async def test_exception_propagates(self) -> None:
        token = CancellationToken()

        async def boom() -> None:
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            await token.run(boom())

    @pytest.mark.asyncio
    async def test_already_cancelled_never_starts(self) -> None:
        token = CancellationToken()
        token.cancel("gone")
        started: list[bool] = []

        async def work() -> None:
            started.append(True)

        outcome = await token.run(work())
        assert outcome == Cancelled("gone")
        assert started == []

    @pytest.mark.asyncio
    async def test_outer_cancellation_cancels_inner(self) -> None:
        token = CancellationToken()
        inner_cancelled = asyncio.Event()

        async def slow() -> None:
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                inner_cancelled.set()
                raise

        outer = asyncio.create_task(token.run(slow()))
        await asyncio.sleep(0.01)
        outer.cancel()
        with pytest.raises(asyncio.CancelledError):
            await outer
        await asyncio.wait_for(inner_cancelled.wait(), 1)


class TestGuard:
    @pytest.mark.asyncio
    async def test_returns_value(self) -> None:
        token = CancellationToken()
        assert await token.guard(_value_after(0, 42)) == 42

    @pytest.mark.asyncio
    async def test_raises_aborted(self) -> None:
        token = CancellationToken()
        asyncio.get_running_loop().call_later(0.01, token.cancel, "aborted")
        with pytest.raises(Aborted) as exc_info:
            await token.guard(_value_after(10, None))
        assert exc_info.value.reason == "aborted"
        assert str(exc_info.value) == "aborted"


class TestSessionManager:
    def test_no_current_initially(self) -> None:
        assert SessionManager().current is None

    def test_start_installs_current(self) -> None:
        sessions = SessionManager()
        token = sessions.start_new_session()
        assert sessions.current is token
        assert not token.cancelled

    def test_new_session_cancels_previous(self) -> None:
        sessions = SessionManager()
        first = sessions.start_new_session()
        second = sessions.start_new_session()
        assert first.cancelled
        assert first.reason == ABORTED
        assert not second.cancelled
        assert sessions.current is second

    def test_previously_cancelled_token_left_alone(self) -> None:
        sessions = SessionManager()
        first = sessions.start_new_session()
        first.cancel("settled")
        sessions.start_new_session()
        assert first.reason == "settled"
