"""Tests for request schemas."""

import base64
from decimal import Decimal

import pytest
from pydantic import ValidationError

from catalog_api.api.schemas import (
    MAX_BASE64_FILE_BYTES,
    CategoryPagingParams,
    ProductFilterRequest,
    ProductPagingParams,
    ProductRequest,
    ProductResponse,
    decoded_base64_size,
)
from catalog_api.catalog.pagination import SortDirection


class TestDecodedBase64Size:
    """Tests for decoded_base64_size."""

    @pytest.mark.parametrize("raw", [b"", b"a", b"ab", b"abc", b"abcd"])
    def test_matches_decoded_length(self, raw: bytes) -> None:
        assert decoded_base64_size(base64.b64encode(raw).decode()) == len(raw)

    def test_ignores_data_uri_prefix(self) -> None:
        encoded = base64.b64encode(b"hello").decode()
        assert decoded_base64_size(f"data:text/plain;base64,{encoded}") == 5


class TestPagingParams:
    """Tests for paging parameter validation."""

    def test_defaults(self) -> None:
        request = ProductPagingParams().to_page_request()

        assert request.page == 0
        assert request.size == 10
        assert request.sort.field == "id"
        assert not request.sort.is_descending

    def test_direction_is_case_insensitive(self) -> None:
        params = ProductPagingParams(sort_by="price", sort_direction="DESC")

        assert params.sort_direction is SortDirection.DESC
        assert params.to_page_request().sort.is_descending

    def test_size_upper_bound(self) -> None:
        with pytest.raises(ValidationError):
            ProductPagingParams(size=101)

    def test_sort_field_allow_list(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            ProductPagingParams(sort_by="password")
        assert "Unsupported sort field" in str(exc_info.value)

        # category listings have no price column
        with pytest.raises(ValidationError):
            CategoryPagingParams(sort_by="price")


class TestProductRequest:
    """Tests for product payload validation."""

    def test_minimal_payload(self) -> None:
        request = ProductRequest(name="Desk", price="99.50")

        assert request.price == Decimal("99.50")
        assert request.in_stock is False
        assert request.stock == 0
        assert request.category_id is None

    def test_oversized_attachment(self) -> None:
        payload = "A" * ((MAX_BASE64_FILE_BYTES // 3 + 1) * 4)

        with pytest.raises(ValidationError) as exc_info:
            ProductRequest(name="Desk", price="1", base64_file=payload)
        assert "5MB" in str(exc_info.value)

    def test_price_serialized_as_number(self) -> None:
        response = ProductResponse(id=1, name="Desk", price=Decimal("99.50"), in_stock=True, stock=1)
        assert response.model_dump(mode="json")["price"] == 99.5


class TestProductFilterRequest:
    """Tests for product filter criteria."""

    def test_requires_one_criterion(self) -> None:
        with pytest.raises(ValidationError):
            ProductFilterRequest(in_stock=True)

    def test_blank_name_does_not_count(self) -> None:
        with pytest.raises(ValidationError):
            ProductFilterRequest(name="   ")

    def test_zero_min_price_counts(self) -> None:
        criteria = ProductFilterRequest(min_price=0).to_filter()
        assert criteria.min_price == Decimal("0")

    def test_to_filter_copies_fields(self) -> None:
        criteria = ProductFilterRequest(
            name="phone", category_id=3, in_stock=True, min_stock=2
        ).to_filter()

        assert criteria.name == "phone"
        assert criteria.category_id == 3
        assert criteria.in_stock is True
        assert criteria.min_stock == 2
        assert criteria.max_price is None
