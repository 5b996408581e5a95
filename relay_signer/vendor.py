"""
Vendor signer: the signing half of a chain driver.

``create()`` is the entry point host applications use: it binds an
orchestrator to a genesis id and wallet and exposes just the two vendor
operations, ``sign_tx`` and ``sign_cert``. Everything else a full
driver does (blocks, accounts, logs) is not this package's concern.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping

from relay_signer.addressing import HashFn
from relay_signer.cancellation import SessionManager
from relay_signer.config import RelayConfig
from relay_signer.orchestrator import BackgroundErrorHook, SigningOrchestrator
from relay_signer.presentation import PresentationConnector
from relay_signer.request import RequestKind
from relay_signer.transport import RelayTransport


class VendorSigner:
    """Signs transactions and certificates through a relay.

    Calls made through one VendorSigner are single-flight: a new request
    aborts the one still pending.
    """

    def __init__(self, orchestrator: SigningOrchestrator) -> None:
        self._orchestrator = orchestrator

    @property
    def orchestrator(self) -> SigningOrchestrator:
        return self._orchestrator

    async def sign_tx(
        self,
        message: list[dict[str, Any]],
        options: Mapping[str, Any] | None = None,
    ) -> Any:
        """Request a transaction signature.

        Args:
            message: Transaction clauses.
            options: Tx options (signer, gas, comment, ...). May carry an
                ``on_accepted`` callback.

        Returns:
            The wallet's tx response (e.g. ``{"txid": ..., "signer": ...}``).
        """
        return await self._orchestrator.sign(RequestKind.TX, message, options)

    async def sign_cert(
        self,
        message: Mapping[str, Any],
        options: Mapping[str, Any] | None = None,
    ) -> Any:
        """Request a certificate signature.

        Args:
            message: Certificate message (purpose, payload).
            options: Cert options. May carry an ``on_accepted`` callback.

        Returns:
            The wallet's cert response (annex and signature).
        """
        return await self._orchestrator.sign(RequestKind.CERT, dict(message), options)


def create(
    genesis_id: str,
    *,
    wallet_id: str | None = None,
    nonce_fn: Callable[[], str] | None = None,
    hash_fn: HashFn | None = None,
    relay_url: str | None = None,
    config: RelayConfig | None = None,
    transport: RelayTransport | None = None,
    connector: PresentationConnector | None = None,
    sessions: SessionManager | None = None,
    on_background_error: BackgroundErrorHook | None = None,
) -> VendorSigner:
    """Create a vendor signer bound to a chain.

    Args:
        genesis_id: Genesis id every request is bound to.
        wallet_id: Browser-extension wallet id, or None for the default
            wallet.
        nonce_fn: Random nonce source. Defaults to 16 random bytes hex.
        hash_fn: Content-address hash. Defaults to BLAKE2b-256 hex.
        relay_url: Custom relay URL. Defaults to ``config.relay_url``.
        config: Protocol timing. Defaults to ``RelayConfig.from_env()``.
        transport: HTTP transport. Defaults to httpx.
        connector: Presentation connector. Defaults to no surface.
        sessions: Share with other signers to share single-flight.
        on_background_error: Observability hook for best-effort tasks.

    Returns:
        A VendorSigner exposing ``sign_tx`` and ``sign_cert``.

    Example:
        >>> signer = create("0x00000000851caf3c...", relay_url="https://relay.example/")
        >>> response = await signer.sign_tx([{"to": "0x...", "value": "0x1", "data": "0x"}])
    """
    if config is None:
        config = RelayConfig.from_env()
    orchestrator = SigningOrchestrator(
        genesis_id,
        wallet_id=wallet_id,
        nonce_fn=nonce_fn,
        hash_fn=hash_fn,
        relay_url=relay_url,
        config=config,
        transport=transport,
        connector=connector,
        sessions=sessions,
        on_background_error=on_background_error,
    )
    return VendorSigner(orchestrator)
