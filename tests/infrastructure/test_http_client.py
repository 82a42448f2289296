"""Tests for the outbound HTTP client."""

import json

import httpx
import pytest
import structlog

from catalog_api.infrastructure.http_client import (
    REQUEST_ID_HEADER,
    ExternalApiError,
    ExternalCatalogClient,
    ExternalProduct,
    create_http_client,
    current_request_id,
)


@pytest.fixture(autouse=True)
def clear_log_context():
    """Keep bound context from leaking between tests."""
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()


def recording_transport(
    seen: list[httpx.Request], status_code: int = 200, json_body=None
) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(status_code, json=json_body if json_body is not None else {})

    return httpx.MockTransport(handler)


class TestRequestIdPropagation:
    """Tests for correlation header forwarding."""

    def test_current_request_id(self) -> None:
        assert current_request_id() is None
        structlog.contextvars.bind_contextvars(request_id="abc")
        assert current_request_id() == "abc"

    @pytest.mark.asyncio
    async def test_header_added_when_bound(self) -> None:
        seen: list[httpx.Request] = []
        structlog.contextvars.bind_contextvars(request_id="req-42")

        async with create_http_client(
            "http://catalog.test", transport=recording_transport(seen)
        ) as client:
            await client.get("/ping")

        assert seen[0].headers[REQUEST_ID_HEADER] == "req-42"

    @pytest.mark.asyncio
    async def test_no_header_without_context(self) -> None:
        seen: list[httpx.Request] = []

        async with create_http_client(
            "http://catalog.test", transport=recording_transport(seen)
        ) as client:
            await client.get("/ping")

        assert REQUEST_ID_HEADER not in seen[0].headers

    @pytest.mark.asyncio
    async def test_explicit_header_wins(self) -> None:
        seen: list[httpx.Request] = []
        structlog.contextvars.bind_contextvars(request_id="bound")

        async with create_http_client(
            "http://catalog.test", transport=recording_transport(seen)
        ) as client:
            await client.get("/ping", headers={REQUEST_ID_HEADER: "explicit"})

        assert seen[0].headers[REQUEST_ID_HEADER] == "explicit"


class TestExternalCatalogClient:
    """Tests for ExternalCatalogClient."""

    @pytest.mark.asyncio
    async def test_get_product(self) -> None:
        seen: list[httpx.Request] = []
        transport = recording_transport(
            seen, json_body={"id": 7, "name": "Lamp", "price": 12.5}
        )

        async with ExternalCatalogClient("http://catalog.test", transport=transport) as client:
            product = await client.get_product(7)

        assert seen[0].method == "GET"
        assert seen[0].url.path == "/products/7"
        assert product == ExternalProduct(
            id=7, name="Lamp", price=12.5, raw={"id": 7, "name": "Lamp", "price": 12.5}
        )

    @pytest.mark.asyncio
    async def test_search_products(self) -> None:
        seen: list[httpx.Request] = []
        transport = recording_transport(seen, json_body=[{"id": 1, "name": "A"}, {"id": 2, "name": "B"}])

        async with ExternalCatalogClient("http://catalog.test", transport=transport) as client:
            products = await client.search_products("lamp")

        assert seen[0].url.params["q"] == "lamp"
        assert [p.name for p in products] == ["A", "B"]

    @pytest.mark.asyncio
    async def test_create_product(self) -> None:
        seen: list[httpx.Request] = []
        transport = recording_transport(seen, json_body={"id": 3, "name": "Desk"})

        async with ExternalCatalogClient("http://catalog.test", transport=transport) as client:
            product = await client.create_product({"name": "Desk", "price": 99})

        assert seen[0].method == "POST"
        assert json.loads(seen[0].read()) == {"name": "Desk", "price": 99}
        assert product.id == 3

    @pytest.mark.asyncio
    async def test_error_status_raises(self) -> None:
        transport = recording_transport([], status_code=503, json_body={"error": "down"})

        async with ExternalCatalogClient("http://catalog.test", transport=transport) as client:
            with pytest.raises(ExternalApiError) as exc_info:
                await client.get_product(1)

        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self) -> None:
        client = ExternalCatalogClient("http://catalog.test", transport=recording_transport([]))
        client._get_client()
        await client.close()
        await client.close()
        assert client._client is None

    def test_defaults_from_settings(self) -> None:
        client = ExternalCatalogClient()
        assert client.base_url == "https://api.example.com"
        assert client.timeout == 10.0
