# catalog_search/domain/services/search_svc.py
"""
Read path: normalize -> compile -> score / aggregate / facet -> assemble.

Stateless per request. Every call is bounded by settings.search_timeout_s;
a slow or failing catalog store fails the whole request instead of
returning a partial or empty answer.
"""
import asyncio
import logging
import time
from typing import Any, Awaitable, Dict, Mapping, Optional, TypeVar

from pymongo.errors import PyMongoError

from catalog_search.core.config import Settings
from catalog_search.core.errors import CatalogStoreError, SearchTimeout
from catalog_search.domain.models.search import Facets, SearchPage, SearchRequest, SortKey, SortOrder
from catalog_search.domain.repositories.catalog import CatalogRepos
from catalog_search.domain.services.assembler import (
    build_pagination,
    empty_page,
    paginate,
    ranks_in_python,
    sort_products,
    store_sort_stages,
)
from catalog_search.domain.services.compiler import compile_request
from catalog_search.domain.services.facets import FacetCalculator, rating_tiers
from catalog_search.domain.services.normalizer import normalize_search_request
from catalog_search.domain.services.popularity import overlay_all, resolve_counters
from catalog_search.domain.services.relevance import RelevanceScorer

logger = logging.getLogger(__name__)

T = TypeVar("T")

# sort names accepted by the plain catalog listing
LISTING_SORTS = {
    "name": SortKey.NAME,
    "price": SortKey.PRICE,
    "rating": SortKey.RATING,
    "createdAt": SortKey.CREATED_AT,
    "updatedAt": SortKey.UPDATED_AT,
    "popularityScore": SortKey.POPULARITY,
    "purchaseCount": SortKey.POPULARITY,
}


def _needs_live_counters(p) -> bool:
    return p.views <= 0 or p.add_to_cart_count <= 0 or p.purchase_count <= 0


async def _bounded(coro: Awaitable[T], *, settings: Settings, what: str, params: Dict[str, Any]) -> T:
    try:
        return await asyncio.wait_for(coro, timeout=settings.search_timeout_s)
    except asyncio.TimeoutError:
        logger.error("%s timeout after %.1fs params=%s", what, settings.search_timeout_s, params)
        raise SearchTimeout(f"Failed to {what}", details={"params": params})
    except PyMongoError as e:
        logger.error("%s store error params=%s err=%s", what, params, e)
        raise CatalogStoreError(f"Failed to {what}", details={"params": params})


async def _ranked_page(repos: CatalogRepos, req: SearchRequest) -> SearchPage:
    t0 = time.perf_counter()
    compiled = await compile_request(req, repos.categories)
    if compiled.empty:
        return empty_page(req)

    counters = None
    if ranks_in_python(req):
        # rank over narrow documents, then load the page in full
        ranked = await repos.products.find_ranking_fields(compiled.predicate)
        scores: Optional[Dict[str, float]] = None
        if req.sort is SortKey.RELEVANCE:
            scores = RelevanceScorer(req.q).scores(ranked)
        else:
            live = await repos.events.totals_for([p.id for p in ranked if _needs_live_counters(p)])
            counters = resolve_counters(ranked, live)
        window = paginate(sort_products(ranked, req, scores=scores, counters=counters), req)
        data = await repos.products.find_by_ids([p.id for p in window.data])
        pagination = window.pagination
    else:
        data, total = await repos.products.find_page(compiled.predicate, store_sort_stages(req), req.skip, req.limit)
        pagination = build_pagination(req.page, req.limit, total)
    db_dt = time.perf_counter() - t0

    if counters is None:
        live = await repos.events.totals_for([p.id for p in data if _needs_live_counters(p)])
        counters = resolve_counters(data, live)

    logger.info(
        "search done total=%s page=%s returned=%s db_time=%.3fs total_time=%.3fs",
        pagination.total, req.page, len(data), db_dt, time.perf_counter() - t0,
    )
    return SearchPage(data=overlay_all(data, counters), pagination=pagination)


async def run_search(repos: CatalogRepos, settings: Settings, req: SearchRequest) -> SearchPage:
    logger.info(
        "search start q=%r category=%s brands=%s sizes=%s colors=%s price=%s..%s rating>=%s sort=%s/%s page=%s limit=%s",
        req.q, req.category, req.brands, req.sizes, req.colors, req.min_price, req.max_price,
        req.min_rating, req.sort.value, req.order.value, req.page, req.limit,
    )
    return await _bounded(
        _ranked_page(repos, req),
        settings=settings,
        what="search products",
        params=req.model_dump(mode="json"),
    )


async def search_products_svc(repos: CatalogRepos, settings: Settings, params: Mapping[str, Optional[str]]) -> SearchPage:
    req = normalize_search_request(params, settings)
    return await run_search(repos, settings, req)


async def _facets(repos: CatalogRepos, settings: Settings, req: SearchRequest) -> Facets:
    compiled = await compile_request(req, repos.categories)
    calculator = FacetCalculator(repos.products, limit=settings.facet_limit)
    if compiled.empty:
        # only the category facet drops the unmatched category; every other dimension keeps it
        return Facets(categories=await calculator.categories(compiled.predicate), ratings=rating_tiers({}))
    return await calculator.compute(compiled.predicate)


async def search_facets_svc(repos: CatalogRepos, settings: Settings, params: Mapping[str, Optional[str]]) -> Facets:
    req = normalize_search_request(params, settings)
    logger.info("facets start q=%r category=%s brands=%s sizes=%s colors=%s", req.q, req.category, req.brands, req.sizes, req.colors)
    return await _bounded(
        _facets(repos, settings, req),
        settings=settings,
        what="calculate filter facets",
        params=req.model_dump(mode="json"),
    )


async def list_products_svc(repos: CatalogRepos, settings: Settings, params: Mapping[str, Optional[str]]) -> SearchPage:
    """
    Plain catalog listing (no text, no filters). A thin adapter over the
    search engine: unknown sort names fall back to newest first.
    """
    req = normalize_search_request({"page": params.get("page"), "limit": params.get("limit")}, settings)
    sort = LISTING_SORTS.get(params.get("sort") or "createdAt")
    if sort is None:
        update = {"sort": SortKey.CREATED_AT, "order": SortOrder.DESC}
    else:
        update = {"sort": sort, "order": SortOrder.ASC if params.get("order") == "asc" else SortOrder.DESC}
    return await run_search(repos, settings, req.model_copy(update=update))
