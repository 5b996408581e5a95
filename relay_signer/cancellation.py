"""
Cooperative cancellation for signing sessions.

A CancellationToken represents "this signing operation is no longer
wanted". It starts pending, is cancelled at most once, and never
re-arms. Every suspending step of a session races against it:

    outcome = await token.run(transport.get_text(url))
    if isinstance(outcome, Cancelled):
        ...

``run()`` returns a tagged outcome (``Ok`` or ``Cancelled``) so the
cancellation path is visible at the call site. ``guard()`` is the
shorthand for code that simply wants ``Aborted`` raised instead.

The awaitable that loses the race is cancelled. Its result is never
observed.

SessionManager owns the single "current" token. Starting a session
cancels the previous token synchronously, before the new session
suspends for the first time, which is what aborts the older call.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Generic, TypeVar, Union

from relay_signer.errors import Aborted

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Reason used when a newer session supersedes an older one, and on teardown.
ABORTED = "aborted"


@dataclass(frozen=True)
class Ok(Generic[T]):
    """The awaitable finished before the token was cancelled."""

    value: T


@dataclass(frozen=True)
class Cancelled:
    """The token was cancelled first."""

    reason: str


Outcome = Union[Ok[T], Cancelled]


def _discard(awaitable: Awaitable[Any]) -> None:
    """Drop an awaitable that will never be awaited."""
    if inspect.iscoroutine(awaitable):
        awaitable.close()
    elif isinstance(awaitable, asyncio.Future):
        awaitable.cancel()


class CancellationToken:
    """Single-use cancellation signal shared by one session's tasks."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._reason is not None

    @property
    def reason(self) -> str | None:
        """Why the token was cancelled, or None while pending."""
        return self._reason

    def cancel(self, reason: str = ABORTED) -> bool:
        """Cancel the token.

        Idempotent: the first reason sticks and later calls are no-ops.

        Returns:
            True if this call cancelled the token.
        """
        if self._reason is not None:
            return False
        self._reason = reason
        self._event.set()
        return True

    async def wait(self) -> str:
        """Suspend until the token is cancelled; return the reason."""
        await self._event.wait()
        assert self._reason is not None
        return self._reason

    async def run(self, awaitable: Awaitable[T]) -> Outcome[T]:
        """Race ``awaitable`` against cancellation.

        Returns:
            Ok(value) if the awaitable finished first, Cancelled(reason)
            otherwise. If both are ready at once, cancellation wins.

        Raises:
            Whatever the awaitable raises, if it finishes first.
        """
        if self._reason is not None:
            _discard(awaitable)
            return Cancelled(self._reason)

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if self._reason is not None or not task.done():
                task.cancel()

        if self._reason is not None:
            if task.done() and not task.cancelled():
                # Lost the race; mark any exception as retrieved.
                task.exception()
            return Cancelled(self._reason)
        return Ok(task.result())

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Like ``run()``, but raise Aborted instead of returning Cancelled."""
        outcome = await self.run(awaitable)
        if isinstance(outcome, Cancelled):
            raise Aborted(outcome.reason)
        return outcome.value


class SessionManager:
    """Holds the current session's token and enforces single-flight.

    Only one token is current at a time. ``start_new_session()`` is
    synchronous: the previous token is cancelled and replaced without
    yielding to the event loop.
    """

    def __init__(self) -> None:
        self._current: CancellationToken | None = None

    @property
    def current(self) -> CancellationToken | None:
        """The most recently issued token (possibly already cancelled)."""
        return self._current

    def start_new_session(self) -> CancellationToken:
        """Cancel the previous token, if any, and issue a fresh one."""
        previous = self._current
        if previous is not None and previous.cancel(ABORTED):
            logger.debug("superseded pending signing session")
        token = CancellationToken()
        self._current = token
        return token
