"""
Tests for the vendor signer factory.

Uses pytest-httpx so the whole stack (factory → orchestrator → relay
client → httpx transport) runs against mocked relay endpoints.
"""

from __future__ import annotations

import json

import httpx
import pytest
from pytest_httpx import HTTPXMock

from relay_signer import RelayConfig, RelayError, blake2b256_hex, create
from relay_signer.orchestrator import SigningOrchestrator

BASE = "https://relay.example/"
GENESIS = "0x00000000851caf3cfdb6e899cf5958bfb1ac3413d346d43539627e6be7ec1b4a"
CLAUSES = [{"to": "0x7567d83b7b8d80addcb281a71d54fc7b3364ffed", "value": "0x1", "data": "0x"}]

# Grace timer long enough that it never fires during these tests.
CONFIG = RelayConfig(relay_url=BASE, reveal_delay=30.0)


def _expected_id(kind: str, message: object, options: dict[str, object], nonce: str) -> str:
    body = json.dumps(
        {"gid": GENESIS, "nonce": nonce, "payload": {"message": message, "options": options}, "type": kind},
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return blake2b256_hex(body)


class TestCreate:
    def test_builds_orchestrator(self) -> None:
        signer = create(GENESIS, config=CONFIG)
        assert isinstance(signer.orchestrator, SigningOrchestrator)
        assert signer.orchestrator.relay.config.relay_url == BASE

    def test_relay_url_override(self) -> None:
        signer = create(GENESIS, config=CONFIG, relay_url="https://other.example/")
        assert signer.orchestrator.relay.config.relay_url == "https://other.example/"

    def test_default_config_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RELAY_SIGNER_URL", "https://env.example/")
        signer = create(GENESIS)
        assert signer.orchestrator.relay.config.relay_url == "https://env.example/"

    def test_default_nonce_is_fresh(self) -> None:
        from relay_signer.orchestrator import default_nonce

        first, second = default_nonce(), default_nonce()
        assert first != second
        assert len(first) == 32


class TestSignOverHttp:
    @pytest.mark.asyncio
    async def test_sign_tx(self, httpx_mock: HTTPXMock) -> None:
        rid = _expected_id("tx", CLAUSES, {"comment": "pay"}, "n1")
        httpx_mock.add_response(url=f"{BASE}{rid}", method="POST")
        httpx_mock.add_response(url=f"{BASE}{rid}.accepted?wait=1", text="1", is_optional=True)
        httpx_mock.add_response(
            url=f"{BASE}{rid}.resp?wait=1", text='{"payload":{"txid":"0xdead","signer":"0x1"}}'
        )

        signer = create(GENESIS, config=CONFIG, nonce_fn=lambda: "n1")
        result = await signer.sign_tx(
            CLAUSES, {"comment": "pay", "onAccepted": lambda: None}
        )

        assert result == {"txid": "0xdead", "signer": "0x1"}
        post = next(r for r in httpx_mock.get_requests() if r.method == "POST")
        assert post.headers["Content-Type"] == "application/json"
        assert blake2b256_hex(post.content.decode("utf-8")) == rid
        assert b"onAccepted" not in post.content

    @pytest.mark.asyncio
    async def test_sign_cert_error(self, httpx_mock: HTTPXMock) -> None:
        message = {"purpose": "identification", "payload": {"type": "text", "content": "hello"}}
        rid = _expected_id("cert", message, {}, "n2")
        httpx_mock.add_response(url=f"{BASE}{rid}", method="POST")
        httpx_mock.add_response(url=f"{BASE}{rid}.resp?wait=1", text='{"error":"user cancelled"}')
        httpx_mock.add_response(url=f"{BASE}{rid}.accepted?wait=1", text="1", is_optional=True)

        signer = create(GENESIS, config=CONFIG, nonce_fn=lambda: "n2")
        with pytest.raises(RelayError, match="user cancelled"):
            await signer.sign_cert(message)

    @pytest.mark.asyncio
    async def test_submit_retried_after_server_error(self, httpx_mock: HTTPXMock) -> None:
        rid = _expected_id("tx", CLAUSES, {}, "n3")
        config = RelayConfig(relay_url=BASE, reveal_delay=30.0, submit_retry_delay=0.01)
        httpx_mock.add_response(url=f"{BASE}{rid}", method="POST", status_code=502)
        httpx_mock.add_response(url=f"{BASE}{rid}", method="POST", status_code=200)
        httpx_mock.add_response(url=f"{BASE}{rid}.resp?wait=1", text='{"payload":{"txid":"0x1"}}')
        httpx_mock.add_response(url=f"{BASE}{rid}.accepted?wait=1", text="1", is_optional=True)

        signer = create(GENESIS, config=config, nonce_fn=lambda: "n3")
        assert await signer.sign_tx(CLAUSES) == {"txid": "0x1"}

        posts = [r for r in httpx_mock.get_requests() if r.method == "POST"]
        assert len(posts) == 2
        assert isinstance(posts[0], httpx.Request)
