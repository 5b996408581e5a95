"""Tests for HttpxRelayTransport against a mocked httpx layer."""

from __future__ import annotations

import httpx
import pytest
from pytest_httpx import HTTPXMock

from relay_signer.transport import HttpxRelayTransport, RelayTransport

URL = "https://relay.example/" + "cd" * 32


class TestProtocol:
    def test_httpx_transport_satisfies_protocol(self) -> None:
        assert isinstance(HttpxRelayTransport(), RelayTransport)

    def test_timeout_property(self) -> None:
        assert HttpxRelayTransport(timeout=5.0).timeout == 5.0


class TestPost:
    @pytest.mark.asyncio
    async def test_sends_body_verbatim(self, httpx_mock: HTTPXMock) -> None:
        """The body bytes are exactly the hashed text, never re-encoded."""
        httpx_mock.add_response(url=URL, method="POST", status_code=200)
        body = '{"gid":"0xabc","nonce":"n1","payload":{"message":{"é":1},"options":{}},"type":"tx"}'

        await HttpxRelayTransport().post(URL, body)

        request = httpx_mock.get_requests()[0]
        assert request.content == body.encode("utf-8")
        assert request.headers["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_extra_headers(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=URL, method="POST")

        await HttpxRelayTransport(headers={"X-Client": "relay-signer"}).post(URL, "{}")

        request = httpx_mock.get_requests()[0]
        assert request.headers["X-Client"] == "relay-signer"

    @pytest.mark.asyncio
    async def test_error_status_raises(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=URL, method="POST", status_code=503)

        with pytest.raises(httpx.HTTPStatusError):
            await HttpxRelayTransport().post(URL, "{}")

    @pytest.mark.asyncio
    async def test_connection_error_raises(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_exception(httpx.ConnectError("refused"), url=URL)

        with pytest.raises(httpx.ConnectError):
            await HttpxRelayTransport().post(URL, "{}")


class TestGetText:
    @pytest.mark.asyncio
    async def test_returns_body(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            url=f"{URL}.resp?wait=1", method="GET", text='{"payload":{"txid":"0xdead"}}'
        )

        text = await HttpxRelayTransport().get_text(f"{URL}.resp?wait=1")

        assert text == '{"payload":{"txid":"0xdead"}}'

    @pytest.mark.asyncio
    async def test_empty_body(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=f"{URL}.accepted?wait=1", method="GET", text="")

        assert await HttpxRelayTransport().get_text(f"{URL}.accepted?wait=1") == ""

    @pytest.mark.asyncio
    async def test_error_status_raises(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=f"{URL}.resp?wait=1", status_code=404, text="not found")

        with pytest.raises(httpx.HTTPStatusError):
            await HttpxRelayTransport().get_text(f"{URL}.resp?wait=1")

    @pytest.mark.asyncio
    async def test_timeout_raises(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_exception(httpx.ReadTimeout("held too long"), url=f"{URL}.resp?wait=1")

        with pytest.raises(httpx.TimeoutException):
            await HttpxRelayTransport().get_text(f"{URL}.resp?wait=1")
