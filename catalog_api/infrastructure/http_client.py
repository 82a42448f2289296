"""Outbound HTTP client with request correlation.

Client for integrations with external catalog services; the API itself
serves requests without calling out. Every client built here forwards
the request ID bound by ``RequestIdMiddleware`` so downstream services
can join their logs with ours.
"""

from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from catalog_api.infrastructure.config import settings

logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"


def current_request_id() -> str | None:
    """Get the request ID bound to the current log context, if any."""
    return structlog.contextvars.get_contextvars().get("request_id")


async def _propagate_request_id(request: httpx.Request) -> None:
    """httpx request hook adding the correlation header."""
    request_id = current_request_id()
    if request_id and REQUEST_ID_HEADER not in request.headers:
        request.headers[REQUEST_ID_HEADER] = request_id


def create_http_client(
    base_url: str,
    timeout: float = 10.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create an AsyncClient that propagates the correlation ID.

    Args:
        base_url: Base URL of the downstream service.
        timeout: Request timeout in seconds.
        transport: Optional transport override (tests use MockTransport).

    Returns:
        Configured httpx.AsyncClient.
    """
    return httpx.AsyncClient(
        base_url=base_url,
        timeout=timeout,
        headers={"Content-Type": "application/json"},
        event_hooks={"request": [_propagate_request_id]},
        transport=transport,
    )


# ============================================================================
# External Catalog Client
# ============================================================================


class ExternalApiError(Exception):
    """Error from an external catalog API call."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class ExternalProduct:
    """Product data returned by the external catalog."""

    id: int | None
    name: str
    description: str | None = None
    price: float | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "ExternalProduct":
        """Create from external API response.

        Args:
            data: API response data.

        Returns:
            ExternalProduct instance.
        """
        return cls(
            id=data.get("id"),
            name=data.get("name", ""),
            description=data.get("description"),
            price=data.get("price"),
            raw=data,
        )


class ExternalCatalogClient:
    """HTTP client for a downstream product catalog.

    Example usage:
        async with ExternalCatalogClient() as client:
            product = await client.get_product(42)
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url or settings.external_api_url
        self.timeout = timeout if timeout is not None else settings.external_api_timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "ExternalCatalogClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = create_http_client(
                self.base_url, timeout=self.timeout, transport=self._transport
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self._get_client().request(method, path, **kwargs)
        if response.status_code >= 400:
            logger.error(
                "External API error",
                method=method,
                path=path,
                status_code=response.status_code,
                body=response.text[:500],
            )
            raise ExternalApiError(
                f"External API error: {response.status_code}",
                status_code=response.status_code,
            )
        return response.json()

    async def get_product(self, product_id: int) -> ExternalProduct:
        """Fetch a product by ID."""
        logger.info("Fetching external product", product_id=product_id)
        data = await self._request("GET", f"/products/{product_id}")
        return ExternalProduct.from_api_response(data)

    async def search_products(self, query: str) -> list[ExternalProduct]:
        """Search products by free-text query."""
        logger.info("Searching external products", query=query)
        data = await self._request("GET", "/products/search", params={"q": query})
        return [ExternalProduct.from_api_response(item) for item in data]

    async def create_product(self, payload: dict[str, Any]) -> ExternalProduct:
        """Create a product in the external catalog."""
        logger.info("Creating external product", name=payload.get("name"))
        data = await self._request("POST", "/products", json=payload)
        return ExternalProduct.from_api_response(data)
