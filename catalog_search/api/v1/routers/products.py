# catalog_search/api/v1/routers/products.py

from fastapi import APIRouter, Depends, Query
from typing import Dict, List, Optional
import time

from catalog_search.api.deps import catalog_repos, settings_dep
from catalog_search.api.v1.schemas.search import FacetsEnvelope, SearchEnvelope
from catalog_search.core.config import Settings, get_settings
from catalog_search.domain.repositories.catalog import CatalogRepos
from catalog_search.domain.services.assembler import page_payload
from catalog_search.domain.services.search_svc import list_products_svc, search_facets_svc, search_products_svc

import logging
logger = logging.getLogger(__name__)

router = APIRouter(prefix=get_settings().api_prefix, tags=["products"])


def _joined(values: Optional[List[str]]) -> Optional[str]:
    # ?brand=a,b and ?brand=a&brand=b are equivalent
    return ",".join(values) if values else None


def _filter_params(
    q: Optional[str] = Query(None, description="Free-text query"),
    category: Optional[str] = Query(None, description="Category id or slug"),
    brand: Optional[List[str]] = Query(None, description="One or more brands, comma separated"),
    size: Optional[List[str]] = Query(None, description="One or more sizes, comma separated"),
    color: Optional[List[str]] = Query(None, description="One or more colors, comma separated"),
    minPrice: Optional[str] = Query(None),
    maxPrice: Optional[str] = Query(None),
    minRating: Optional[str] = Query(None, description="0-5"),
    page: Optional[str] = Query(None, description=">= 1"),
    limit: Optional[str] = Query(None, description="1-100"),
    sort: Optional[str] = Query(None, description="relevance | price | rating | date | createdAt | name | popularity"),
    order: Optional[str] = Query(None, description="asc | desc"),
) -> Dict[str, Optional[str]]:
    # raw strings: parsing and validation belong to the query normalizer
    return {
        "q": q,
        "category": category,
        "brand": _joined(brand),
        "size": _joined(size),
        "color": _joined(color),
        "minPrice": minPrice,
        "maxPrice": maxPrice,
        "minRating": minRating,
        "page": page,
        "limit": limit,
        "sort": sort,
        "order": order,
    }


@router.get("/products/search", response_model=SearchEnvelope, summary="Search, filter and rank products")
async def search_products(
    params: Dict[str, Optional[str]] = Depends(_filter_params),
    repos: CatalogRepos = Depends(catalog_repos),
    settings: Settings = Depends(settings_dep),
):
    t0 = time.perf_counter()
    page = await search_products_svc(repos, settings, params)
    logger.info(
        "Response: search_products returned %s/%s items in %.4fs",
        len(page.data), page.pagination.total, time.perf_counter() - t0,
    )
    return {"success": True, "data": page_payload(page)}


@router.get("/products/search/facets", response_model=FacetsEnvelope, summary="Filter facets for the current search")
async def search_facets(
    params: Dict[str, Optional[str]] = Depends(_filter_params),
    repos: CatalogRepos = Depends(catalog_repos),
    settings: Settings = Depends(settings_dep),
):
    t0 = time.perf_counter()
    facets = await search_facets_svc(repos, settings, params)
    logger.info("Response: search_facets in %.4fs", time.perf_counter() - t0)
    return {"success": True, "data": facets.model_dump()}


@router.get("/products", response_model=SearchEnvelope, summary="Paginated catalog listing")
async def list_products(
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    sort: Optional[str] = Query(None, description="name | price | rating | createdAt | updatedAt | popularityScore | purchaseCount"),
    order: Optional[str] = Query(None, description="asc | desc"),
    repos: CatalogRepos = Depends(catalog_repos),
    settings: Settings = Depends(settings_dep),
):
    result = await list_products_svc(repos, settings, {"page": page, "limit": limit, "sort": sort, "order": order})
    return {"success": True, "data": page_payload(result)}
