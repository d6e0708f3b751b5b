# catalog_search/domain/services/popularity.py
"""
Popularity blending.

Stored counters on a product are a cache that the backfill operator keeps
up to date; the event log is the ground truth. A stored counter wins only
when it is positive, otherwise the live event total is used, so products
that were never backfilled still rank sensibly.
"""
from __future__ import annotations

from typing import Dict, List, Mapping, Optional, Sequence

from catalog_search.domain.models.product import EffectiveCounters, EventTotals, Product
from catalog_search.domain.services.constants import POP_ADD_WEIGHT, POP_PURCHASE_WEIGHT, POP_VIEW_WEIGHT


def popularity_score(views: int, adds: int, purchases: int) -> float:
    return (purchases * POP_PURCHASE_WEIGHT) + (adds * POP_ADD_WEIGHT) + (views * POP_VIEW_WEIGHT)


def _pick(stored: int, live: int) -> int:
    return stored if stored > 0 else live


def effective_counters(product: Product, totals: Optional[EventTotals]) -> EffectiveCounters:
    live = totals or EventTotals()
    views = _pick(product.views, live.views)
    adds = _pick(product.add_to_cart_count, live.adds)
    purchases = _pick(product.purchase_count, live.purchases)
    return EffectiveCounters(
        views=views,
        adds=adds,
        purchases=purchases,
        popularity=popularity_score(views, adds, purchases),
    )


def resolve_counters(
    products: Sequence[Product],
    totals_by_id: Mapping[str, EventTotals],
) -> Dict[str, EffectiveCounters]:
    return {p.id: effective_counters(p, totals_by_id.get(p.id)) for p in products}


def overlay(product: Product, counters: EffectiveCounters) -> Product:
    """Copy of the product carrying effective counters and the recomputed popularity score."""
    return product.model_copy(update={
        "views": counters.views,
        "add_to_cart_count": counters.adds,
        "purchase_count": counters.purchases,
        "popularity_score": counters.popularity,
    })


def overlay_all(products: Sequence[Product], counters_by_id: Mapping[str, EffectiveCounters]) -> List[Product]:
    return [overlay(p, counters_by_id[p.id]) if p.id in counters_by_id else p for p in products]
