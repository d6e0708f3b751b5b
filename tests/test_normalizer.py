"""Tests for query-string normalization and validation."""

import pytest

from catalog_search.core.config import Settings
from catalog_search.core.errors import InvalidSearchRequest
from catalog_search.domain.models.search import SortKey, SortOrder
from catalog_search.domain.services.normalizer import normalize_search_request, split_list


class TestDefaults:
    def test_empty_params(self, settings):
        req = normalize_search_request({}, settings)
        assert req.page == 1
        assert req.limit == 12
        assert req.sort is SortKey.RELEVANCE
        assert req.order is SortOrder.DESC
        assert req.q is None
        assert req.brands == ()

    def test_blank_query_is_no_query(self, settings):
        assert normalize_search_request({"q": "   "}, settings).q is None

    def test_query_is_trimmed(self, settings):
        assert normalize_search_request({"q": "  nike air "}, settings).q == "nike air"


class TestPagination:
    @pytest.mark.parametrize("params", [{"page": "0"}, {"limit": "0"}, {"limit": "101"}, {"page": "-3"}])
    def test_out_of_range(self, settings, params):
        with pytest.raises(InvalidSearchRequest) as exc:
            normalize_search_request(params, settings)
        assert exc.value.status_code == 400
        assert exc.value.message == "Invalid pagination parameters. Page must be >= 1, limit must be 1-100"

    def test_limit_boundaries_accepted(self, settings):
        assert normalize_search_request({"limit": "1"}, settings).limit == 1
        assert normalize_search_request({"limit": "100"}, settings).limit == 100

    def test_non_integer_page(self, settings):
        with pytest.raises(InvalidSearchRequest, match="page must be an integer"):
            normalize_search_request({"page": "two"}, settings)

    def test_skip(self, settings):
        assert normalize_search_request({"page": "3", "limit": "10"}, settings).skip == 20


class TestPrice:
    def test_negative_min(self, settings):
        with pytest.raises(InvalidSearchRequest, match="Minimum price cannot be negative"):
            normalize_search_request({"minPrice": "-1"}, settings)

    def test_negative_max(self, settings):
        with pytest.raises(InvalidSearchRequest, match="Maximum price cannot be negative"):
            normalize_search_request({"maxPrice": "-0.5"}, settings)

    def test_inverted_range_is_swapped(self, settings):
        inverted = normalize_search_request({"minPrice": "5000", "maxPrice": "1000"}, settings)
        ordered = normalize_search_request({"minPrice": "1000", "maxPrice": "5000"}, settings)
        assert (inverted.min_price, inverted.max_price) == (1000, 5000)
        assert inverted == ordered

    def test_inverted_range_rejected_by_policy(self):
        strict = Settings(price_inversion_policy="reject")
        with pytest.raises(InvalidSearchRequest, match="Minimum price cannot be greater than maximum price"):
            normalize_search_request({"minPrice": "5000", "maxPrice": "1000"}, strict)

    def test_not_a_number(self, settings):
        with pytest.raises(InvalidSearchRequest, match="minPrice must be a number"):
            normalize_search_request({"minPrice": "cheap"}, settings)

    def test_zero_is_a_bound(self, settings):
        req = normalize_search_request({"minPrice": "0"}, settings)
        assert req.min_price == 0


class TestRating:
    @pytest.mark.parametrize("raw", ["-0.1", "5.5", "6"])
    def test_out_of_range(self, settings, raw):
        with pytest.raises(InvalidSearchRequest, match="Rating must be between 0 and 5"):
            normalize_search_request({"minRating": raw}, settings)

    @pytest.mark.parametrize("raw,expected", [("0", 0), ("4", 4), ("5", 5), ("3.5", 3.5)])
    def test_in_range(self, settings, raw, expected):
        assert normalize_search_request({"minRating": raw}, settings).min_rating == expected


class TestLists:
    def test_split_trims_and_drops_empty(self):
        assert split_list(" nike, ,adidas ,") == ("nike", "adidas")

    def test_split_dedupes_case_insensitively(self):
        assert split_list("Nike,nike,NIKE,Puma") == ("Nike", "Puma")

    def test_split_none(self):
        assert split_list(None) == ()

    def test_request_lists(self, settings):
        req = normalize_search_request({"brand": "Nike,Adidas", "size": "9", "color": "black,white"}, settings)
        assert req.brands == ("Nike", "Adidas")
        assert req.sizes == ("9",)
        assert req.colors == ("black", "white")


class TestSort:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("price", SortKey.PRICE),
            ("Rating", SortKey.RATING),
            ("date", SortKey.CREATED_AT),
            ("createdAt", SortKey.CREATED_AT),
            ("name", SortKey.NAME),
            ("popularity", SortKey.POPULARITY),
            ("relevance", SortKey.RELEVANCE),
        ],
    )
    def test_aliases(self, settings, raw, expected):
        assert normalize_search_request({"sort": raw}, settings).sort is expected

    def test_unknown_sort(self, settings):
        with pytest.raises(InvalidSearchRequest, match="Invalid sort"):
            normalize_search_request({"sort": "random"}, settings)

    def test_order(self, settings):
        assert normalize_search_request({"order": "ASC"}, settings).order is SortOrder.ASC

    def test_unknown_order(self, settings):
        with pytest.raises(InvalidSearchRequest, match="Order must be"):
            normalize_search_request({"order": "sideways"}, settings)
