"""Tests for shared/http.py."""

import httpx
import pytest

from shared.http import create_http_client, reset_http_client_factory, set_http_client_factory


class TestCreateHttpClient:
    @pytest.mark.asyncio
    async def test_default_client_headers_and_timeout(self):
        async with create_http_client() as client:
            assert client.headers["user-agent"] == "portcullis/0.1.0"
            assert client.headers["accept"] == "application/json"
            assert client.timeout.read == 10.0

    @pytest.mark.asyncio
    async def test_factory_override(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(204))
        set_http_client_factory(lambda: httpx.AsyncClient(transport=transport))

        async with create_http_client() as client:
            response = await client.get("https://example.test/")
        assert response.status_code == 204

    @pytest.mark.asyncio
    async def test_reset_restores_default(self):
        set_http_client_factory(lambda: httpx.AsyncClient(headers={"User-Agent": "other"}))
        reset_http_client_factory()

        async with create_http_client() as client:
            assert client.headers["user-agent"] == "portcullis/0.1.0"
