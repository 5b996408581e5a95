"""
Relay client: submit a request and long-poll for the wallet's answers.

Wraps a RelayTransport with the relay protocol's resilience rules:

    submit(request_id, body, token)
        POST {base}/{request_id}. Up to ``submit_attempts`` attempts,
        ``submit_retry_delay`` between them, then SubmitFailed.

    poll(request_id, suffix, timeout, token)
        GET {base}/{request_id}{suffix}?wait=1 until the body is
        non-empty. An empty body means "keep waiting" and resets the
        error count. More than ``poll_error_limit`` consecutive errors
        (each followed by ``poll_retry_delay``) raises PollFailed. The
        ``timeout`` deadline, measured from the call, raises PollTimeout;
        a GET still held when the deadline passes is abandoned.

Every network call and every delay races the session token; a cancelled
token surfaces as Aborted immediately.

``sleep`` and ``clock`` are injectable so retry and deadline behaviour
can be tested without waiting in real time.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

from relay_signer.cancellation import CancellationToken
from relay_signer.config import RelayConfig
from relay_signer.errors import Aborted, PollFailed, PollTimeout, SubmitFailed
from relay_signer.transport import HttpxRelayTransport, RelayTransport

logger = logging.getLogger(__name__)

ACCEPTED_SUFFIX = ".accepted"
RESP_SUFFIX = ".resp"

SleepFn = Callable[[float], Awaitable[None]]


def resource_url(relay_url: str, request_id: str) -> str:
    """Resolve the relay resource for a request id."""
    return f"{relay_url.rstrip('/')}/{request_id}"


class RelayClient:
    """Submits signing requests to a relay and polls for answers.

    Args:
        config: Relay URL and protocol timing. Defaults to RelayConfig().
        transport: Injectable HTTP transport. Defaults to
            HttpxRelayTransport using ``config.request_timeout``.
        sleep: Async delay function. Defaults to asyncio.sleep.
        clock: Monotonic clock in seconds. Defaults to time.monotonic.
    """

    def __init__(
        self,
        config: RelayConfig | None = None,
        transport: RelayTransport | None = None,
        *,
        sleep: SleepFn | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._config = config or RelayConfig()
        self._transport = transport or HttpxRelayTransport(
            timeout=self._config.request_timeout
        )
        self._sleep = sleep or asyncio.sleep
        self._clock = clock or time.monotonic

    @property
    def config(self) -> RelayConfig:
        return self._config

    @property
    def transport(self) -> RelayTransport:
        return self._transport

    def resource_url(self, request_id: str) -> str:
        """The URL the request is stored at (also handed to the wallet)."""
        return resource_url(self._config.relay_url, request_id)

    # -----------------------------------------------------------------
    # submit
    # -----------------------------------------------------------------

    async def submit(
        self,
        request_id: str,
        body: str,
        token: CancellationToken,
    ) -> None:
        """Store the request on the relay.

        Raises:
            SubmitFailed: Every attempt failed. The last transport error
                is chained as ``__cause__``.
            Aborted: The token was cancelled.
        """
        url = self.resource_url(request_id)
        attempts = self._config.submit_attempts
        last_error: Exception | None = None

        for attempt in range(1, attempts + 1):
            try:
                await token.guard(self._transport.post(url, body))
            except Aborted:
                raise
            except Exception as exc:
                last_error = exc
                logger.warning(
                    "submit attempt %d/%d to %s failed: %s",
                    attempt, attempts, url, exc,
                )
            else:
                logger.info("submitted signing request %s", request_id)
                return

            if attempt < attempts:
                await token.guard(self._sleep(self._config.submit_retry_delay))

        raise SubmitFailed(
            "failed to submit request",
            details={"url": url, "attempts": attempts, "error": str(last_error)},
        ) from last_error

    # -----------------------------------------------------------------
    # poll
    # -----------------------------------------------------------------

    async def poll(
        self,
        request_id: str,
        suffix: str,
        timeout: float,
        token: CancellationToken,
    ) -> str:
        """Long-poll a request sub-resource until it has data.

        Args:
            request_id: Request id returned by content addressing.
            suffix: Sub-resource suffix (ACCEPTED_SUFFIX or RESP_SUFFIX).
            timeout: Seconds from now after which PollTimeout is raised.
            token: Session token.

        Returns:
            The first non-empty response body.

        Raises:
            PollTimeout: The deadline passed with no data.
            PollFailed: More than ``poll_error_limit`` consecutive errors.
            Aborted: The token was cancelled.
        """
        url = f"{self.resource_url(request_id)}{suffix}?wait=1"
        deadline = self._clock() + timeout
        errors = 0

        while self._clock() < deadline:
            remaining = deadline - self._clock()
            try:
                text = await token.guard(
                    asyncio.wait_for(self._transport.get_text(url), remaining)
                )
            except Aborted:
                raise
            except TimeoutError:
                # held GET outlived the deadline
                break
            except Exception as exc:
                errors += 1
                if errors > self._config.poll_error_limit:
                    raise PollFailed(
                        "failed to fetch response",
                        details={"url": url, "consecutive_errors": errors},
                    ) from exc
                logger.warning(
                    "poll %s failed (%d consecutive): %s", url, errors, exc
                )
                await token.guard(self._sleep(self._config.poll_retry_delay))
                continue

            errors = 0
            if text:
                return text

        raise PollTimeout(
            "timeout",
            details={"url": url, "timeout": timeout},
        )
