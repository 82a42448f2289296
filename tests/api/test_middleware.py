"""Tests for API middleware and problem responses."""

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

from catalog_api.api.errors import PROBLEM_CONTENT_TYPE, setup_exception_handlers
from catalog_api.api.middleware import setup_middleware
from catalog_api.domain.exceptions import CatalogError, InvalidSortFieldError


@pytest.fixture
def failing_client() -> TestClient:
    """Client for a small app whose routes raise."""
    app = FastAPI()
    setup_middleware(app)
    setup_exception_handlers(app)

    @app.get("/boom")
    async def boom() -> None:
        raise RuntimeError("secret internals")

    @app.get("/catalog-error")
    async def catalog_error() -> None:
        raise CatalogError("Something in the catalog broke")

    @app.get("/teapot")
    async def teapot() -> None:
        raise HTTPException(status_code=418, detail="short and stout")

    @app.get("/bad-sort")
    async def bad_sort() -> None:
        raise InvalidSortFieldError("secret", ["id", "name"])

    return TestClient(app)


class TestRequestIdMiddleware:
    """Tests for request ID correlation middleware."""

    def test_generates_request_id_if_not_provided(self, client: TestClient) -> None:
        """Should generate request ID if not in request headers."""
        response = client.get("/health")
        assert response.status_code == 200
        assert "X-Request-ID" in response.headers
        # UUID format
        request_id = response.headers["X-Request-ID"]
        assert len(request_id) == 36

    def test_uses_provided_request_id(self, client: TestClient) -> None:
        """Should use request ID from request headers."""
        custom_id = "custom-request-id-12345"
        response = client.get(
            "/health",
            headers={"X-Request-ID": custom_id},
        )
        assert response.status_code == 200
        assert response.headers["X-Request-ID"] == custom_id

    def test_problem_carries_request_id(self, client: TestClient) -> None:
        """Problem bodies include the correlation ID."""
        response = client.get(
            "/api/products/123", headers={"X-Request-ID": "trace-me"}
        )
        assert response.status_code == 404
        assert response.json()["request_id"] == "trace-me"
        assert response.headers["X-Request-ID"] == "trace-me"


class TestProblemResponses:
    """Tests for problem-detail rendering."""

    def test_problem_shape(self, client: TestClient) -> None:
        """Problem bodies carry the standard members."""
        response = client.get("/api/categories/77")
        problem = response.json()

        assert response.headers["content-type"].startswith(PROBLEM_CONTENT_TYPE)
        assert problem["type"] == "about:blank"
        assert problem["status"] == 404
        assert problem["instance"] == "/api/categories/77"
        assert problem["timestamp"]
        assert "errors" not in problem

    def test_unhandled_exception_is_generic_500(self, failing_client: TestClient) -> None:
        """Unexpected errors hide their details."""
        response = failing_client.get("/boom")

        assert response.status_code == 500
        problem = response.json()
        assert problem["title"] == "Internal Server Error"
        assert problem["detail"] == "An internal error occurred"
        assert "secret" not in response.text
        assert "X-Request-ID" in response.headers

    def test_catalog_error_is_500(self, failing_client: TestClient) -> None:
        response = failing_client.get("/catalog-error")
        assert response.status_code == 500
        assert response.json()["title"] == "Internal Server Error"

    def test_http_exception_keeps_status(self, failing_client: TestClient) -> None:
        response = failing_client.get("/teapot")
        assert response.status_code == 418
        assert response.json()["title"] == "I'm a Teapot"
        assert response.json()["detail"] == "short and stout"

    def test_unknown_route_is_404_problem(self, failing_client: TestClient) -> None:
        response = failing_client.get("/nowhere")
        assert response.status_code == 404
        assert response.json()["title"] == "Not Found"

    def test_invalid_sort_is_400(self, failing_client: TestClient) -> None:
        response = failing_client.get("/bad-sort")
        assert response.status_code == 400
        assert response.json()["title"] == "Validation Failed"
        assert "sort_by" in response.json()["errors"]
