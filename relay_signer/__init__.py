"""
relay-signer: obtain wallet signatures through a request relay.

Public API:

    Entry point:
        - ``create()``: bind a ``VendorSigner`` (``sign_tx``/``sign_cert``)
          to a genesis id and wallet.
        - ``SigningOrchestrator``: the per-call state machine behind it.

    Protocol pieces:
        - ``SigningRequest``, ``RequestKind``: what is relayed.
        - ``address()``, ``encode_request()``, ``request_id()``,
          ``blake2b256_hex()``: content addressing.
        - ``RelayClient``: submit with retries, long-poll with deadlines.
        - ``CancellationToken``, ``SessionManager``, ``Ok``, ``Cancelled``:
          cooperative cancellation and single-flight.

    Protocols (for dependency injection):
        - ``RelayTransport``: HTTP boundary (``HttpxRelayTransport``).
        - ``PresentationConnector`` / ``Presentation``: show/hide surface.

    Errors:
        - ``SigningError`` and subclasses ``SubmitFailed``, ``PollTimeout``,
          ``PollFailed``, ``RelayError``, ``MalformedResponse``,
          ``Aborted``, ``InvalidRequest``.
"""

from relay_signer.addressing import (
    address,
    blake2b256_hex,
    encode_request,
    request_id,
)
from relay_signer.cancellation import (
    Cancelled,
    CancellationToken,
    Ok,
    SessionManager,
)
from relay_signer.config import DEFAULT_RELAY_URL, RelayConfig
from relay_signer.errors import (
    Aborted,
    InvalidRequest,
    MalformedResponse,
    PollFailed,
    PollTimeout,
    RelayError,
    SessionOutcome,
    SigningError,
    SubmitFailed,
)
from relay_signer.orchestrator import (
    SigningOrchestrator,
    SigningSession,
    SigningState,
    parse_response,
)
from relay_signer.presentation import (
    NullConnector,
    Presentation,
    PresentationConnector,
    WalletLinkConnector,
    deep_link,
    signing_link,
)
from relay_signer.relay import ACCEPTED_SUFFIX, RESP_SUFFIX, RelayClient
from relay_signer.request import RequestKind, SigningRequest, split_options
from relay_signer.transport import HttpxRelayTransport, RelayTransport
from relay_signer.vendor import VendorSigner, create

__all__ = [
    # Entry point
    "create",
    "VendorSigner",
    "SigningOrchestrator",
    "SigningSession",
    "SigningState",
    "parse_response",
    # Request & addressing
    "RequestKind",
    "SigningRequest",
    "split_options",
    "address",
    "blake2b256_hex",
    "encode_request",
    "request_id",
    # Relay
    "ACCEPTED_SUFFIX",
    "RESP_SUFFIX",
    "RelayClient",
    "RelayTransport",
    "HttpxRelayTransport",
    "DEFAULT_RELAY_URL",
    "RelayConfig",
    # Cancellation
    "CancellationToken",
    "SessionManager",
    "Ok",
    "Cancelled",
    # Presentation
    "Presentation",
    "PresentationConnector",
    "NullConnector",
    "WalletLinkConnector",
    "deep_link",
    "signing_link",
    # Errors
    "SigningError",
    "SubmitFailed",
    "PollTimeout",
    "PollFailed",
    "RelayError",
    "MalformedResponse",
    "Aborted",
    "InvalidRequest",
    "SessionOutcome",
]

__version__ = "0.1.0"
