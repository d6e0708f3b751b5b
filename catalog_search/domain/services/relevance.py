# catalog_search/domain/services/relevance.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Sequence

from catalog_search.domain.models.product import Product
from catalog_search.domain.services.constants import (
    POSITION_BOOST_MAX,
    W_BRAND_CONTAINS,
    W_BRAND_PREFIX,
    W_DESCRIPTION_CONTAINS,
    W_NAME_CONTAINS,
    W_NAME_PREFIX,
    W_VARIANT_CONTAINS,
)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def created_ts(product: Product) -> float:
    """createdAt as a POSIX timestamp; naive datetimes from Mongo are UTC."""
    dt = product.created_at
    if dt is None:
        return _EPOCH.timestamp()
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


def relevance_score(query: str, product: Product) -> float:
    """
    Heuristic text relevance of one product for one query.
    Signals are independent and summed; case-insensitive throughout.
    """
    q = (query or "").strip().lower()
    if not q:
        return 0.0

    name = (product.name or "").lower()
    brand = (product.brand or "").lower()
    description = (product.description or "").lower()

    score = 0.0
    if name.startswith(q):
        score += W_NAME_PREFIX
    if brand.startswith(q):
        score += W_BRAND_PREFIX
    if q in name:
        score += W_NAME_CONTAINS
    if q in brand:
        score += W_BRAND_CONTAINS
    if any(
        q in (value or "").lower()
        for v in product.variants
        for value in (v.sku, v.color, v.size)
    ):
        score += W_VARIANT_CONTAINS
    if q in description:
        score += W_DESCRIPTION_CONTAINS

    idx = name.find(q)
    if 0 <= idx < POSITION_BOOST_MAX:
        score += max(0, POSITION_BOOST_MAX - idx)
    return score


class RelevanceScorer:
    """Scores text candidates for one query. Ordering is left to the result assembler."""

    def __init__(self, query: str):
        self.query = query

    def score(self, product: Product) -> float:
        return relevance_score(self.query, product)

    def scores(self, products: Sequence[Product]) -> Dict[str, float]:
        return {p.id: self.score(p) for p in products}
