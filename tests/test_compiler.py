"""Tests for request compilation (category resolution, text clause)."""

from catalog_search.domain.models.search import SearchRequest
from catalog_search.domain.services.compiler import compile_request, is_object_id
from catalog_search.domain.services.predicate import Dimension

SHOES_ID = "64b000000000000000000001"
SHIRTS_ID = "64b000000000000000000002"


def test_is_object_id():
    assert is_object_id(SHOES_ID)
    # 12 characters would be accepted as raw bytes by ObjectId itself
    assert not is_object_id("running-shoe")
    assert not is_object_id("z" * 24)


async def test_slug_is_resolved_case_insensitively(repos):
    compiled = await compile_request(SearchRequest(category="Shoes"), repos.categories)
    assert not compiled.empty
    assert compiled.predicate.category_id == SHOES_ID


async def test_object_id_skips_lookup(repos):
    compiled = await compile_request(SearchRequest(category=SHIRTS_ID), repos.categories)
    assert compiled.predicate.category_id == SHIRTS_ID
    assert repos.categories.slug_lookups == []


async def test_twelve_char_slug_is_looked_up(repos):
    compiled = await compile_request(SearchRequest(category="running-shoe"), repos.categories)
    assert repos.categories.slug_lookups == ["running-shoe"]
    assert compiled.empty


async def test_unknown_slug_compiles_to_empty(repos):
    compiled = await compile_request(SearchRequest(category="boats", brands=("Nike",)), repos.categories)
    assert compiled.empty
    # the other filters survive for the category facet
    assert compiled.predicate.category_id is None
    assert compiled.predicate.brands == ("Nike",)


async def test_filters_carry_over(repos):
    req = SearchRequest(brands=("Nike",), sizes=("9",), min_price=5, min_rating=4)
    predicate = (await compile_request(req, repos.categories)).predicate
    assert predicate.active_dimensions() == [Dimension.BRAND, Dimension.SIZE, Dimension.PRICE, Dimension.RATING]


async def test_query_collects_matching_categories(repos):
    predicate = (await compile_request(SearchRequest(q="sh"), repos.categories)).predicate
    assert predicate.text.query == "sh"
    assert predicate.text.category_ids == (SHOES_ID, SHIRTS_ID)


async def test_no_query_no_text(repos):
    predicate = (await compile_request(SearchRequest(), repos.categories)).predicate
    assert predicate.text is None
