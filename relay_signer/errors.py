"""
Error taxonomy for relayed signing.

Every failure a caller of ``sign()`` can observe is a ``SigningError``
carrying a stable machine-readable ``error_code`` and a ``details`` dict.
Transport exceptions never leak past the relay client: they are retried
locally and, once the retry budget is spent, surface as one of the
classes below with the last transport error chained as ``__cause__``.

Each class also records how a signing session settles when it is raised
(``outcome``), so the orchestrator does not need an isinstance ladder.

Error codes:
    - SUBMIT_FAILED: every submission attempt failed.
    - POLL_TIMEOUT: the poll deadline passed with no data.
    - POLL_FAILED: too many consecutive poll errors.
    - RELAY_ERROR: the wallet answered with an error message.
    - MALFORMED_RESPONSE: the relay's answer was not a JSON object.
    - ABORTED: the session was superseded or torn down.
    - INVALID_REQUEST: the request could not be serialized.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class SessionOutcome(StrEnum):
    """How a signing session settled."""

    SUCCESS = "SUCCESS"
    RELAY_ERROR = "RELAY_ERROR"
    TIMEOUT = "TIMEOUT"
    ABORTED = "ABORTED"


class SigningError(Exception):
    """Base class for relayed signing failures.

    Args:
        message: Human-readable message. ``str(exc)`` returns it unchanged.
        error_code: Stable code for automation.
        details: Extra diagnostic fields (urls, attempt counts, ...).
    """

    error_code = "SIGNING_ERROR"
    outcome = SessionOutcome.RELAY_ERROR

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code is not None:
            self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class InvalidRequest(SigningError):
    """The signing request is not JSON-serializable."""

    error_code = "INVALID_REQUEST"


class SubmitFailed(SigningError):
    error_code = "SUBMIT_FAILED"
    outcome = SessionOutcome.TIMEOUT


class PollTimeout(SigningError):
    error_code = "POLL_TIMEOUT"
    outcome = SessionOutcome.TIMEOUT


class PollFailed(SigningError):
    error_code = "POLL_FAILED"
    outcome = SessionOutcome.TIMEOUT


class RelayError(SigningError):
    """The wallet answered, and the answer is an error.

    The message is the wallet's ``error`` string verbatim.
    """

    error_code = "RELAY_ERROR"


class MalformedResponse(SigningError):
    error_code = "MALFORMED_RESPONSE"


class Aborted(SigningError):
    """The session's cancellation token fired before the operation finished."""

    error_code = "ABORTED"
    outcome = SessionOutcome.ABORTED

    def __init__(self, reason: str = "aborted", **kwargs: Any) -> None:
        super().__init__(reason, **kwargs)
        self.reason = reason
