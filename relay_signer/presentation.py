"""
Presentation surface: how the user is invited to approve in their wallet.

The orchestrator only needs a show/hide lifecycle:

    presentation = connector.connect(src, wallet_id)
    presentation.show()   # idempotent, safe to call repeatedly
    presentation.hide()   # safe even if show() was never called

What "showing" means (a popup, an in-page banner, a deep link) belongs
to the host application. Two connectors ship here:

    - NullConnector: no surface at all (headless callers, tests).
    - WalletLinkConnector: opens the wallet's sign page for the request
      once per show/hide cycle via an injectable opener.
"""

from __future__ import annotations

import logging
import webbrowser
from typing import Callable, Protocol, runtime_checkable
from urllib.parse import quote

logger = logging.getLogger(__name__)

LITE_WALLET_URL = "https://lite.sync.vecha.in/"
DEEP_LINK_SCHEME = "connex"


@runtime_checkable
class Presentation(Protocol):
    """Show/hide handle for one signing session."""

    def show(self) -> None: ...

    def hide(self) -> None: ...


@runtime_checkable
class PresentationConnector(Protocol):
    """Creates a presentation handle for a relayed request."""

    def connect(self, src: str, wallet_id: str | None) -> Presentation:
        """Bind a presentation to a request.

        Args:
            src: Relay URL of the request (what the wallet loads).
            wallet_id: Browser-extension wallet id, or None for the
                default wallet.
        """
        ...


def _encode_component(value: str) -> str:
    """Percent-encode like JavaScript's encodeURIComponent."""
    return quote(value, safe="-_.!~*'()")


def deep_link(src: str) -> str:
    """Native wallet deep link for a request."""
    return f"{DEEP_LINK_SCHEME}:sign?src={_encode_component(src)}"


def signing_link(
    src: str,
    wallet_id: str | None = None,
    lite_wallet_url: str = LITE_WALLET_URL,
) -> str:
    """Web wallet sign page for a request.

    With a wallet id the extension's own page is used, otherwise the
    hosted lite wallet.
    """
    if wallet_id:
        base = f"chrome-extension://{wallet_id}/www/index.html"
    else:
        base = lite_wallet_url.rstrip("/") + "/"
    return f"{base}#/sign?src={_encode_component(src)}"


# =========================================================================
# Null surface
# =========================================================================


class NullPresentation:
    def show(self) -> None:
        pass

    def hide(self) -> None:
        pass


class NullConnector:
    """Connector for callers that surface nothing."""

    def connect(self, src: str, wallet_id: str | None) -> Presentation:
        return NullPresentation()


# =========================================================================
# Link surface
# =========================================================================


class LinkPresentation:
    """Opens a link on the first show() of each show/hide cycle."""

    def __init__(self, url: str, opener: Callable[[str], object]) -> None:
        self._url = url
        self._opener = opener
        self._shown = False

    @property
    def url(self) -> str:
        return self._url

    @property
    def shown(self) -> bool:
        return self._shown

    def show(self) -> None:
        if self._shown:
            return
        self._shown = True
        logger.info("opening wallet sign page %s", self._url)
        self._opener(self._url)

    def hide(self) -> None:
        # An opened browser page cannot be closed from here; hiding only
        # re-arms show().
        self._shown = False


class WalletLinkConnector:
    """Connector that sends the user to the wallet's sign page.

    Args:
        opener: Called with the URL to open. Defaults to webbrowser.open.
        lite_wallet_url: Hosted wallet used when no wallet id is given.
        use_deep_link: Open the native ``connex:`` deep link instead of
            a web page (desktop wallets).
    """

    def __init__(
        self,
        opener: Callable[[str], object] | None = None,
        *,
        lite_wallet_url: str = LITE_WALLET_URL,
        use_deep_link: bool = False,
    ) -> None:
        self._opener = opener or webbrowser.open
        self._lite_wallet_url = lite_wallet_url
        self._use_deep_link = use_deep_link

    def connect(self, src: str, wallet_id: str | None) -> LinkPresentation:
        if self._use_deep_link and not wallet_id:
            url = deep_link(src)
        else:
            url = signing_link(src, wallet_id, self._lite_wallet_url)
        return LinkPresentation(url, self._opener)
