"""
Signing orchestrator: one relayed signing session per ``sign()`` call.

State machine:

    BUILDING → SUBMITTING → AWAITING_OUTCOME → SETTLED

    BUILDING          strip the acceptance callback, build the request,
                      encode it, derive its id. Then supersede any
                      pending session (synchronously, before suspending).
    SUBMITTING        RelayClient.submit. SubmitFailed settles TIMEOUT.
    AWAITING_OUTCOME  three concurrent activities on the session token:
                        - response poll (".resp"): decides the outcome.
                        - acceptance poll (".accepted"): best-effort;
                          marks the session accepted, hides the surface,
                          fires the acceptance callback once.
                        - grace reveal: best-effort; after reveal_delay,
                          shows the surface unless already accepted.
    SETTLED           always: cancel the token, cancel and await the
                      best-effort tasks, hide the surface.

Best-effort tasks never fail the session. Aborts are logged at DEBUG;
anything else is logged and passed to the ``on_background_error`` hook.

Single-flight: sessions share a SessionManager. A newer ``sign()``
cancels the older session's token, and the older call raises Aborted.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
import secrets
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Awaitable, Callable, Mapping

from relay_signer.addressing import HashFn, address, blake2b256_hex
from relay_signer.cancellation import ABORTED, CancellationToken, SessionManager
from relay_signer.config import RelayConfig
from relay_signer.errors import (
    Aborted,
    MalformedResponse,
    RelayError,
    SessionOutcome,
    SigningError,
)
from relay_signer.presentation import NullConnector, Presentation, PresentationConnector
from relay_signer.relay import ACCEPTED_SUFFIX, RESP_SUFFIX, RelayClient, SleepFn
from relay_signer.request import RequestKind, SigningRequest, split_options
from relay_signer.transport import RelayTransport

logger = logging.getLogger(__name__)

BackgroundErrorHook = Callable[[str, Exception], None]


def default_nonce() -> str:
    """16 random bytes, hex encoded."""
    return secrets.token_hex(16)


class SigningState(StrEnum):
    BUILDING = "BUILDING"
    SUBMITTING = "SUBMITTING"
    AWAITING_OUTCOME = "AWAITING_OUTCOME"
    SETTLED = "SETTLED"


@dataclass
class SigningSession:
    """Mutable state bound to one ``sign()`` call.

    Attributes:
        request: The request as relayed.
        request_id: Content address of the request.
        token: Cancellation token; cancelled once the session settles.
        presentation: Show/hide handle for this request.
        state: Current state machine position.
        accepted: Set when the wallet acknowledged the request.
        outcome: How the session settled. None until SETTLED.
    """

    request: SigningRequest
    request_id: str
    token: CancellationToken
    presentation: Presentation
    state: SigningState = SigningState.BUILDING
    accepted: bool = False
    outcome: SessionOutcome | None = None


def parse_response(text: str) -> Any:
    """Interpret the relay's final answer.

    Returns:
        The ``payload`` field (None if absent).

    Raises:
        RelayError: The answer carries a non-empty ``error``.
        MalformedResponse: The answer is not a JSON object.
    """
    try:
        resp = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedResponse(
            "response was not valid JSON",
            details={"body_preview": text[:200]},
        ) from exc

    if not isinstance(resp, dict):
        raise MalformedResponse(
            "response JSON was not an object",
            details={"type": type(resp).__name__},
        )

    error = resp.get("error")
    if error:
        raise RelayError(str(error), details={"error": error})
    return resp.get("payload")


class SigningOrchestrator:
    """Runs relayed signing sessions for one chain and wallet.

    Args:
        genesis_id: Genesis id every request is bound to.
        wallet_id: Browser-extension wallet id, or None.
        nonce_fn: Fresh nonce per call. Defaults to 16 random bytes hex.
        hash_fn: Content-address hash. Defaults to BLAKE2b-256 hex.
        relay_url: Overrides ``config.relay_url``.
        config: Relay URL and protocol timing.
        relay: Pre-built RelayClient (takes precedence over config and
            transport).
        transport: HTTP transport for the default RelayClient.
        connector: Presentation connector. Defaults to NullConnector.
        sessions: Shared SessionManager. Orchestrators that share one
            also share single-flight.
        on_background_error: Called with (task name, exception) when a
            best-effort task fails for a reason other than an abort.
        sleep: Async delay function for the grace timer and retries.
    """

    def __init__(
        self,
        genesis_id: str,
        *,
        wallet_id: str | None = None,
        nonce_fn: Callable[[], str] | None = None,
        hash_fn: HashFn | None = None,
        relay_url: str | None = None,
        config: RelayConfig | None = None,
        relay: RelayClient | None = None,
        transport: RelayTransport | None = None,
        connector: PresentationConnector | None = None,
        sessions: SessionManager | None = None,
        on_background_error: BackgroundErrorHook | None = None,
        sleep: SleepFn | None = None,
    ) -> None:
        if relay is None:
            config = (config or RelayConfig()).with_relay_url(relay_url)
            relay = RelayClient(config, transport, sleep=sleep)
        self._genesis_id = genesis_id
        self._wallet_id = wallet_id
        self._nonce_fn = nonce_fn or default_nonce
        self._hash_fn = hash_fn or blake2b256_hex
        self._relay = relay
        self._config = relay.config
        self._connector = connector or NullConnector()
        self._sessions = sessions or SessionManager()
        self._on_background_error = on_background_error
        self._sleep = sleep or asyncio.sleep
        self._current_session: SigningSession | None = None

    @property
    def relay(self) -> RelayClient:
        return self._relay

    @property
    def sessions(self) -> SessionManager:
        return self._sessions

    @property
    def current_session(self) -> SigningSession | None:
        """The most recently started session (possibly settled)."""
        return self._current_session

    # -----------------------------------------------------------------
    # sign
    # -----------------------------------------------------------------

    async def sign(
        self,
        kind: RequestKind | str,
        message: Any,
        options: Mapping[str, Any] | None = None,
        *,
        on_accepted: Callable[[], object] | None = None,
    ) -> Any:
        """Relay a signing request and wait for the wallet's answer.

        Args:
            kind: "tx" or "cert".
            message: Transaction clauses or certificate message.
            options: Signing options. An ``on_accepted`` / ``onAccepted``
                entry is used as the acceptance callback and is never
                sent to the relay.
            on_accepted: Acceptance callback; overrides one in options.
                May be a plain function or a coroutine function.

        Returns:
            The wallet's response payload.

        Raises:
            InvalidRequest: The request cannot be serialized. No session
                is started and no pending session is cancelled.
            SubmitFailed, PollTimeout, PollFailed: Relay unreachable or
                wallet silent.
            RelayError: The wallet answered with an error.
            MalformedResponse: The relay's answer was not a JSON object.
            Aborted: A newer ``sign()`` call superseded this one.
        """
        # BUILDING
        wire_options, callback = split_options(options)
        if on_accepted is None:
            on_accepted = callback
        request = SigningRequest(
            kind=RequestKind(kind),
            genesis_id=self._genesis_id,
            message=message,
            nonce=self._nonce_fn(),
            options=wire_options,
        )
        request_id, body = address(request, self._hash_fn)

        # Cancel-prior. Must stay ahead of the first await.
        token = self._sessions.start_new_session()
        try:
            presentation = self._connector.connect(
                self._relay.resource_url(request_id), self._wallet_id
            )
        except BaseException:
            token.cancel(ABORTED)
            raise
        session = SigningSession(
            request=request,
            request_id=request_id,
            token=token,
            presentation=presentation,
        )
        self._current_session = session

        background: list[asyncio.Task[None]] = []
        try:
            self._transition(session, SigningState.SUBMITTING)
            await self._relay.submit(request_id, body, token)

            self._transition(session, SigningState.AWAITING_OUTCOME)
            background.append(
                self._spawn_best_effort("reveal", self._reveal_after_grace, session)
            )
            background.append(
                self._spawn_best_effort(
                    "acceptance", self._watch_acceptance, session, on_accepted
                )
            )

            text = await self._relay.poll(
                request_id, RESP_SUFFIX, self._config.response_timeout, token
            )
            payload = parse_response(text)
        except SigningError as exc:
            session.outcome = exc.outcome
            raise
        except asyncio.CancelledError:
            session.outcome = SessionOutcome.ABORTED
            raise
        else:
            session.outcome = SessionOutcome.SUCCESS
            return payload
        finally:
            token.cancel(ABORTED)
            for task in background:
                task.cancel()
            if background:
                await asyncio.gather(*background, return_exceptions=True)
            try:
                presentation.hide()
            except Exception:
                logger.exception("hiding presentation for %s failed", request_id)
            self._transition(session, SigningState.SETTLED)
            logger.info(
                "signing session %s settled: %s", request_id, session.outcome
            )

    async def sign_tx(
        self,
        message: Any,
        options: Mapping[str, Any] | None = None,
        *,
        on_accepted: Callable[[], object] | None = None,
    ) -> Any:
        return await self.sign(RequestKind.TX, message, options, on_accepted=on_accepted)

    async def sign_cert(
        self,
        message: Any,
        options: Mapping[str, Any] | None = None,
        *,
        on_accepted: Callable[[], object] | None = None,
    ) -> Any:
        return await self.sign(RequestKind.CERT, message, options, on_accepted=on_accepted)

    # -----------------------------------------------------------------
    # Best-effort activities
    # -----------------------------------------------------------------

    async def _reveal_after_grace(self, session: SigningSession) -> None:
        await session.token.guard(self._sleep(self._config.reveal_delay))
        if not session.accepted:
            logger.debug("wallet has not accepted %s yet, showing", session.request_id)
            session.presentation.show()

    async def _watch_acceptance(
        self,
        session: SigningSession,
        on_accepted: Callable[[], object] | None,
    ) -> None:
        await self._relay.poll(
            session.request_id,
            ACCEPTED_SUFFIX,
            self._config.accepted_timeout,
            session.token,
        )
        session.accepted = True
        logger.debug("wallet accepted %s", session.request_id)
        session.presentation.hide()
        if on_accepted is not None:
            result = on_accepted()
            if inspect.isawaitable(result):
                await result

    def _spawn_best_effort(
        self,
        name: str,
        activity: Callable[..., Awaitable[None]],
        *args: Any,
    ) -> asyncio.Task[None]:
        return asyncio.create_task(
            self._run_best_effort(name, activity, *args),
            name=f"relay-signer-{name}",
        )

    async def _run_best_effort(
        self,
        name: str,
        activity: Callable[..., Awaitable[None]],
        *args: Any,
    ) -> None:
        """Run an activity whose failure must never escalate."""
        try:
            await activity(*args)
        except Aborted:
            logger.debug("%s task aborted", name)
        except Exception as exc:
            logger.warning(
                "%s task failed: %s",
                name,
                exc,
                exc_info=not isinstance(exc, SigningError),
            )
            self._report_background_error(name, exc)

    def _report_background_error(self, name: str, exc: Exception) -> None:
        if self._on_background_error is None:
            return
        try:
            self._on_background_error(name, exc)
        except Exception:
            logger.exception("background error hook raised for %s task", name)

    def _transition(self, session: SigningSession, state: SigningState) -> None:
        logger.debug(
            "signing session %s: %s -> %s", session.request_id, session.state, state
        )
        session.state = state
