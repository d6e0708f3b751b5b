# catalog_search/domain/services/normalizer.py
"""
Raw query-string parameters -> validated SearchRequest.

All validation happens here, before the catalog store is touched. Each
violated rule raises InvalidSearchRequest with its own message.
"""
import math
from typing import Mapping, Optional, Tuple

from catalog_search.core.config import Settings
from catalog_search.core.errors import InvalidSearchRequest
from catalog_search.domain.models.search import SearchRequest, SortKey, SortOrder

# accepted spellings of the sort parameter
SORT_ALIASES = {
    "relevance": SortKey.RELEVANCE,
    "price": SortKey.PRICE,
    "rating": SortKey.RATING,
    "date": SortKey.CREATED_AT,
    "createdat": SortKey.CREATED_AT,
    "name": SortKey.NAME,
    "popularity": SortKey.POPULARITY,
}


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def split_list(raw: Optional[str]) -> Tuple[str, ...]:
    """
    Comma separated list -> trimmed, non-empty values.
    Duplicates (case-insensitive) are dropped, first spelling wins.
    """
    if not raw:
        return ()
    seen = set()
    out = []
    for part in str(raw).split(","):
        part = part.strip()
        if not part or part.lower() in seen:
            continue
        seen.add(part.lower())
        out.append(part)
    return tuple(out)


def _parse_int(raw: Optional[str], default: int, field: str) -> int:
    raw = _clean(raw)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise InvalidSearchRequest(f"{field} must be an integer", field=field)


def _parse_number(raw: Optional[str], field: str) -> Optional[float]:
    raw = _clean(raw)
    if raw is None:
        return None
    try:
        value = float(raw)
    except ValueError:
        raise InvalidSearchRequest(f"{field} must be a number", field=field)
    if math.isnan(value) or math.isinf(value):
        raise InvalidSearchRequest(f"{field} must be a finite number", field=field)
    return value


def normalize_search_request(params: Mapping[str, Optional[str]], settings: Settings) -> SearchRequest:
    page = _parse_int(params.get("page"), 1, "page")
    limit = _parse_int(params.get("limit"), settings.default_page_limit, "limit")
    if page < 1 or limit < 1 or limit > settings.max_page_limit:
        raise InvalidSearchRequest(
            f"Invalid pagination parameters. Page must be >= 1, limit must be 1-{settings.max_page_limit}",
            field="page" if page < 1 else "limit",
        )

    min_price = _parse_number(params.get("minPrice"), "minPrice")
    max_price = _parse_number(params.get("maxPrice"), "maxPrice")
    if min_price is not None and min_price < 0:
        raise InvalidSearchRequest("Minimum price cannot be negative", field="minPrice")
    if max_price is not None and max_price < 0:
        raise InvalidSearchRequest("Maximum price cannot be negative", field="maxPrice")
    if min_price is not None and max_price is not None and min_price > max_price:
        if settings.price_inversion_policy == "reject":
            raise InvalidSearchRequest("Minimum price cannot be greater than maximum price", field="minPrice")
        min_price, max_price = max_price, min_price

    min_rating = _parse_number(params.get("minRating"), "minRating")
    if min_rating is not None and not 0 <= min_rating <= 5:
        raise InvalidSearchRequest("Rating must be between 0 and 5", field="minRating")

    raw_sort = _clean(params.get("sort"))
    sort = SortKey.RELEVANCE
    if raw_sort is not None:
        sort = SORT_ALIASES.get(raw_sort.lower())
        if sort is None:
            allowed = ", ".join(sorted(SORT_ALIASES))
            raise InvalidSearchRequest(f"Invalid sort. Allowed values: {allowed}", field="sort")

    raw_order = _clean(params.get("order"))
    order = SortOrder.DESC
    if raw_order is not None:
        try:
            order = SortOrder(raw_order.lower())
        except ValueError:
            raise InvalidSearchRequest("Order must be 'asc' or 'desc'", field="order")

    return SearchRequest(
        q=_clean(params.get("q")),
        category=_clean(params.get("category")),
        brands=split_list(params.get("brand")),
        sizes=split_list(params.get("size")),
        colors=split_list(params.get("color")),
        min_price=min_price,
        max_price=max_price,
        min_rating=min_rating,
        sort=sort,
        order=order,
        page=page,
        limit=limit,
    )
