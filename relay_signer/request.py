"""
Signing request: what the wallet is asked to sign.

A SigningRequest is the immutable unit the relay stores and the wallet
reads. It is built once per ``sign()`` call and never persisted beyond
the relay round-trip.

Wire shape (keys sorted on serialization):

    {
        "gid": "<genesis id>",
        "nonce": "<fresh per call>",
        "payload": {"message": ..., "options": {...}},
        "type": "tx" | "cert"
    }

Invariants:
    - kind is "tx" or "cert".
    - nonce is non-empty and fresh per call (the caller's nonce source).
    - options never contain the acceptance callback. The callback is a
      local side-channel: it is split off by ``split_options()`` before
      the request is built, so it is neither hashed nor transmitted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Callable, Mapping

# Option keys that carry the local acceptance callback.
ACCEPTED_CALLBACK_KEYS = ("on_accepted", "onAccepted")


class RequestKind(StrEnum):
    """What the wallet is asked to sign."""

    TX = "tx"
    CERT = "cert"


def split_options(
    options: Mapping[str, Any] | None,
) -> tuple[dict[str, Any], Callable[[], object] | None]:
    """Separate the acceptance callback from the transmitted options.

    Returns:
        (options without any callback key, the callback or None).
        If both spellings are present, ``on_accepted`` wins.
    """
    wire: dict[str, Any] = {}
    callback: Callable[[], object] | None = None
    for key, value in (options or {}).items():
        if key in ACCEPTED_CALLBACK_KEYS:
            if value is not None and (callback is None or key == "on_accepted"):
                callback = value
            continue
        wire[key] = value
    return wire, callback


@dataclass(frozen=True)
class SigningRequest:
    """A signing request as relayed to the wallet.

    Attributes:
        kind: "tx" or "cert".
        genesis_id: Genesis block id of the chain the request binds to.
        message: Transaction clauses or certificate message.
        options: Signing options, callback already stripped.
        nonce: Per-call randomness so identical messages get distinct ids.
    """

    kind: RequestKind
    genesis_id: str
    message: Any
    nonce: str
    options: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Normalize plain strings ("tx") into the enum.
        object.__setattr__(self, "kind", RequestKind(self.kind))
        if not self.nonce:
            raise ValueError("nonce must be non-empty")
        for key in ACCEPTED_CALLBACK_KEYS:
            if key in self.options:
                raise ValueError(f"options must not carry the {key!r} callback")

    def to_wire(self) -> dict[str, object]:
        """The dict that is serialized, hashed and POSTed."""
        return {
            "type": str(self.kind),
            "gid": self.genesis_id,
            "payload": {
                "message": self.message,
                "options": dict(self.options),
            },
            "nonce": self.nonce,
        }
