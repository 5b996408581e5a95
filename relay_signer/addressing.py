"""
Content addressing for relayed signing requests.

The relay stores a request under the hash of its serialized body, and
the wallet's answers live under the same name plus a suffix. The hash
therefore has to be computed over the exact text that goes on the wire:
``encode_request()`` produces that text once and both the POST and
``request_id()`` consume it.
"""

from __future__ import annotations

import hashlib
import json
from typing import Callable

from relay_signer.errors import InvalidRequest
from relay_signer.request import SigningRequest

HashFn = Callable[[str], str]


def blake2b256_hex(text: str) -> str:
    """BLAKE2b-256 of the UTF-8 text, lowercase hex, no prefix."""
    return hashlib.blake2b(text.encode("utf-8"), digest_size=32).hexdigest()


def encode_request(request: SigningRequest) -> str:
    """Serialize a request to the text sent to the relay.

    Keys are sorted at every level, separators carry no whitespace and
    non-ASCII characters are kept as-is, so equal requests always encode
    to the same text and therefore the same id.

    Raises:
        InvalidRequest: If the message or options hold values JSON cannot
            represent (sets, bytes, NaN, ...).
    """
    try:
        return json.dumps(
            request.to_wire(),
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
            allow_nan=False,
        )
    except (TypeError, ValueError) as exc:
        raise InvalidRequest(
            f"signing request is not JSON-serializable: {exc}",
            details={"kind": str(request.kind)},
        ) from exc


def request_id(body: str, hash_fn: HashFn = blake2b256_hex) -> str:
    """Derive the relay resource name for an encoded request body."""
    return hash_fn(body)


def address(request: SigningRequest, hash_fn: HashFn = blake2b256_hex) -> tuple[str, str]:
    """Encode a request and derive its id in one step.

    Returns:
        (request_id, body). ``body`` is the exact text to POST.
    """
    body = encode_request(request)
    return request_id(body, hash_fn), body
