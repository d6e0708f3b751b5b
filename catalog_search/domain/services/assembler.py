# catalog_search/domain/services/assembler.py
from __future__ import annotations

import math
from datetime import timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from catalog_search.domain.models.product import EffectiveCounters, Product
from catalog_search.domain.models.search import Pagination, SearchPage, SearchRequest, SortKey, SortOrder
from catalog_search.domain.services.relevance import created_ts


def _updated_ts(p: Product) -> float:
    dt = p.updated_at or p.created_at
    if dt is None:
        return 0.0
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


def _primary_key(
    req: SearchRequest,
    scores: Optional[Mapping[str, float]],
    counters: Optional[Mapping[str, EffectiveCounters]],
) -> Optional[Callable[[Product], Any]]:
    if req.sort is SortKey.PRICE:
        return lambda p: p.price
    if req.sort is SortKey.RATING:
        return lambda p: p.rating
    if req.sort is SortKey.CREATED_AT:
        return created_ts
    if req.sort is SortKey.UPDATED_AT:
        return _updated_ts
    if req.sort is SortKey.NAME:
        return lambda p: p.name.casefold()
    if req.sort is SortKey.POPULARITY:
        counters = counters or {}
        empty = EffectiveCounters()
        return lambda p: (counters.get(p.id, empty).popularity, counters.get(p.id, empty).purchases)
    if req.sort is SortKey.RELEVANCE and req.q and scores is not None:
        return lambda p: scores.get(p.id, 0.0)
    # relevance without a text query: newest first
    return None


def sort_products(
    products: Sequence[Product],
    req: SearchRequest,
    *,
    scores: Optional[Mapping[str, float]] = None,
    counters: Optional[Mapping[str, EffectiveCounters]] = None,
) -> List[Product]:
    """
    Order by the requested key and direction. Ties always fall back to
    newest first and then id, so the order is total and reproducible.
    """
    ordered = sorted(products, key=lambda p: p.id)
    ordered.sort(key=created_ts, reverse=True)
    key = _primary_key(req, scores, counters)
    if key is not None:
        ordered.sort(key=key, reverse=req.order is SortOrder.DESC)
    return ordered


# sort expressions for keys the store can order by; mirror _primary_key
_STORE_SORT_KEYS: Dict[SortKey, Any] = {
    SortKey.PRICE: "$price",
    SortKey.RATING: {"$ifNull": ["$rating", 0]},
    SortKey.CREATED_AT: "$createdAt",
    SortKey.UPDATED_AT: {"$ifNull": ["$updatedAt", "$createdAt"]},
    SortKey.NAME: {"$toLower": "$name"},
}

_TIE_BREAK = {"createdAt": -1, "_id": 1}


def ranks_in_python(req: SearchRequest) -> bool:
    """Relevance (with a query) and popularity need every match scored before paging."""
    return req.sort is SortKey.POPULARITY or (req.sort is SortKey.RELEVANCE and bool(req.q))


def store_sort_stages(req: SearchRequest) -> List[Dict[str, Any]]:
    """
    Pipeline stages ordering matches exactly like sort_products does, for
    every sort except the Python-ranked ones.
    """
    if ranks_in_python(req):
        raise ValueError(f"{req.sort.value} is ranked in Python")
    key = _STORE_SORT_KEYS.get(req.sort)
    if key is None:
        return [{"$sort": dict(_TIE_BREAK)}]
    direction = -1 if req.order is SortOrder.DESC else 1
    return [{"$addFields": {"_sortKey": key}}, {"$sort": {"_sortKey": direction, **_TIE_BREAK}}]


def build_pagination(page: int, limit: int, total: int) -> Pagination:
    pages = math.ceil(total / limit) if limit else 0
    return Pagination(
        page=page,
        limit=limit,
        total=total,
        pages=pages,
        hasNext=page < pages,
        hasPrev=page > 1,
    )


def paginate(ordered: Sequence[Product], req: SearchRequest) -> SearchPage:
    """Slice and total are taken from the same ordered candidate list."""
    window = list(ordered[req.skip: req.skip + req.limit])
    return SearchPage(data=window, pagination=build_pagination(req.page, req.limit, len(ordered)))


def empty_page(req: SearchRequest) -> SearchPage:
    return SearchPage(data=[], pagination=build_pagination(req.page, req.limit, 0))


def page_payload(page: SearchPage) -> Dict[str, Any]:
    """JSON shape served to the presentation layer (Mongo field names)."""
    return {
        "data": [p.model_dump(mode="json", by_alias=True) for p in page.data],
        "pagination": page.pagination.model_dump(),
    }
