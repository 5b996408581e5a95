"""
Transport protocol for relay HTTP calls.

Defines the seam where concrete HTTP implementations plug in. The relay
client depends on this protocol, not on httpx directly, so tests can
swap in a fake without touching retry or polling logic.

Concrete implementations:
    - HttpxRelayTransport (default, uses httpx.AsyncClient)
    - Fake transports (tests, scripted bodies and failures)

Two calls, matching the relay's wire protocol:
    - post(url, body): store a request. Only success/failure matters.
    - get_text(url): long-poll a sub-resource. Empty text means
      "not ready yet"; non-empty text is the data.

Any exception raised by a transport is treated as a transient failure by
the relay client and counted against its retry budget.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import httpx


@runtime_checkable
class RelayTransport(Protocol):
    """Async transport for relay requests."""

    async def post(self, url: str, body: str) -> None:
        """POST a JSON body.

        Args:
            url: Full resource URL ("{base}/{request_id}").
            body: Serialized JSON. Sent byte-for-byte, never re-encoded,
                because the request id is the hash of this exact text.

        Raises:
            Exception: On connection failure, timeout or HTTP error status.
        """
        ...

    async def get_text(self, url: str) -> str:
        """GET a resource and return its body as text.

        Raises:
            Exception: On connection failure, timeout or HTTP error status.
        """
        ...


class HttpxRelayTransport:
    """Default transport using httpx.AsyncClient.

    Args:
        timeout: Per-request timeout in seconds. Long-poll GETs are held
            open by the relay, so this must exceed the server-side hold.
        headers: Extra headers added to every request.
    """

    def __init__(
        self,
        timeout: float = 120.0,
        headers: dict[str, str] | None = None,
    ) -> None:
        self._timeout = timeout
        self._headers = headers or {}

    @property
    def timeout(self) -> float:
        return self._timeout

    async def post(self, url: str, body: str) -> None:
        """POST the body as application/json via httpx."""
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.post(
                url,
                content=body.encode("utf-8"),
                headers={
                    **self._headers,
                    "Content-Type": "application/json",
                },
            )
            response.raise_for_status()

    async def get_text(self, url: str) -> str:
        """GET via httpx and return the decoded body."""
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.get(url, headers=self._headers)
            response.raise_for_status()
            return response.text
