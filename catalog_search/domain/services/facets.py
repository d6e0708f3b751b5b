# catalog_search/domain/services/facets.py
"""
Facet calculator.

Each dimension is counted over the predicate with that dimension's own
filter removed and every other filter (text included) still applied. A
dimension that is currently filtered still gets its facet, so the user can
switch to another value. Price range and rating tiers follow the same rule.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, List, Mapping

from catalog_search.domain.models.search import FacetValue, Facets, PriceRange
from catalog_search.domain.repositories.product_repo import ProductRepo
from catalog_search.domain.services.constants import RATING_MAX, RATING_TIERS
from catalog_search.domain.services.predicate import Dimension, Predicate
from catalog_search.core.logging import json_preview

logger = logging.getLogger(__name__)

_TOP = [{"$sort": {"count": -1, "value": 1}}]


def rating_tiers(buckets: Mapping[int, int]) -> Dict[str, int]:
    """
    Histogram of whole-star buckets (0..5) -> cumulative "N+" counts,
    highest tier first. Suffix sum, so counts never grow as N rises.
    """
    tiers: Dict[str, int] = {}
    cumulative = 0
    for stars in range(RATING_MAX, 0, -1):
        cumulative += int(buckets.get(stars, 0))
        if stars in RATING_TIERS:
            tiers[f"{stars}+"] = cumulative
    return {f"{n}+": tiers[f"{n}+"] for n in RATING_TIERS}


def empty_facets() -> Facets:
    return Facets(ratings=rating_tiers({}))


class FacetCalculator:
    def __init__(self, repo: ProductRepo, limit: int = 20):
        self.repo = repo
        self.limit = limit

    # ----- pipelines ----------------------------------------------------------

    def category_pipeline(self, predicate: Predicate) -> List[Dict[str, Any]]:
        return self.repo.match_stages(predicate.without(Dimension.CATEGORY)) + [
            {"$group": {"_id": "$category", "count": {"$sum": 1}}},
            {"$lookup": {
                "from": self.repo.categories_collection,
                "localField": "_id",
                "foreignField": "_id",
                "as": "cat",
            }},
            {"$unwind": "$cat"},
            {"$project": {"_id": 0, "value": "$cat.slug", "label": "$cat.name", "count": 1}},
            *_TOP,
            {"$limit": self.limit},
        ]

    def brand_pipeline(self, predicate: Predicate) -> List[Dict[str, Any]]:
        return self.repo.match_stages(predicate.without(Dimension.BRAND)) + [
            {"$match": {"brand": {"$nin": [None, ""]}}},
            # deterministic $first spelling
            {"$sort": {"brand": 1}},
            {"$group": {"_id": {"$toLower": "$brand"}, "label": {"$first": "$brand"}, "count": {"$sum": 1}}},
            {"$project": {"_id": 0, "value": "$_id", "label": 1, "count": 1}},
            *_TOP,
            {"$limit": self.limit},
        ]

    def variant_pipeline(self, predicate: Predicate, dimension: Dimension) -> List[Dict[str, Any]]:
        """Size/color facet. Counts products, not variants: a product with two black variants counts once."""
        path = f"variants.{dimension.value}"
        return self.repo.match_stages(predicate.without(dimension)) + [
            {"$unwind": "$variants"},
            {"$match": {path: {"$nin": [None, ""]}}},
            {"$group": {"_id": {"value": {"$toLower": f"${path}"}, "product": "$_id"}}},
            {"$group": {"_id": "$_id.value", "count": {"$sum": 1}}},
            {"$project": {"_id": 0, "value": "$_id", "label": {"$toUpper": "$_id"}, "count": 1}},
            *_TOP,
            {"$limit": self.limit},
        ]

    def price_pipeline(self, predicate: Predicate) -> List[Dict[str, Any]]:
        return self.repo.match_stages(predicate.without(Dimension.PRICE)) + [
            {"$group": {"_id": None, "min": {"$min": "$price"}, "max": {"$max": "$price"}}},
        ]

    def rating_pipeline(self, predicate: Predicate) -> List[Dict[str, Any]]:
        bucket = {"$floor": {"$ifNull": ["$rating", 0]}}
        return self.repo.match_stages(predicate.without(Dimension.RATING)) + [
            {"$group": {"_id": bucket, "count": {"$sum": 1}}},
        ]

    # ----- execution ----------------------------------------------------------

    async def _values(self, pipeline: List[Dict[str, Any]]) -> List[FacetValue]:
        docs = await self.repo.aggregate(pipeline)
        return [
            FacetValue(value=str(d["value"]), label=str(d.get("label") or d["value"]), count=int(d["count"]))
            for d in docs
            if d.get("value") not in (None, "")
        ]

    async def _price_range(self, predicate: Predicate) -> PriceRange:
        docs = await self.repo.aggregate(self.price_pipeline(predicate))
        if not docs or docs[0].get("min") is None:
            return PriceRange(min=0, max=0)
        return PriceRange(min=docs[0]["min"], max=docs[0]["max"])

    async def categories(self, predicate: Predicate) -> List[FacetValue]:
        return await self._values(self.category_pipeline(predicate))

    async def _ratings(self, predicate: Predicate) -> Dict[str, int]:
        docs = await self.repo.aggregate(self.rating_pipeline(predicate))
        buckets: Dict[int, int] = {}
        for d in docs:
            if d.get("_id") is None:
                continue
            stars = min(RATING_MAX, max(0, int(d["_id"])))
            buckets[stars] = buckets.get(stars, 0) + int(d["count"])
        return rating_tiers(buckets)

    async def compute(self, predicate: Predicate) -> Facets:
        """All six aggregations run concurrently; any failure fails the whole result."""
        t0 = time.perf_counter()
        logger.debug("facets brand pipeline=%s", json_preview(self.brand_pipeline(predicate), limit=2000))
        categories, brands, sizes, colors, price_range, ratings = await asyncio.gather(
            self.categories(predicate),
            self._values(self.brand_pipeline(predicate)),
            self._values(self.variant_pipeline(predicate, Dimension.SIZE)),
            self._values(self.variant_pipeline(predicate, Dimension.COLOR)),
            self._price_range(predicate),
            self._ratings(predicate),
        )
        logger.info(
            "facets done categories=%s brands=%s sizes=%s colors=%s time=%.3fs",
            len(categories), len(brands), len(sizes), len(colors), time.perf_counter() - t0,
        )
        return Facets(
            categories=categories,
            brands=brands,
            sizes=sizes,
            colors=colors,
            priceRange=price_range,
            ratings=ratings,
        )
