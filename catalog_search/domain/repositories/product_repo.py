# catalog_search/domain/repositories/product_repo.py

from __future__ import annotations
from typing import Any, Dict, List, Optional, Sequence, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import UpdateOne
from pymongo.results import BulkWriteResult

from catalog_search.domain.models.product import Product
from catalog_search.domain.services.predicate import Predicate
from catalog_search.domain.services.text_match import RegexTextMatcher, TextMatcher

# counters initialised by the migration operator
COUNTER_FIELDS = ("views", "addToCartCount", "purchaseCount", "popularityScore")

CANDIDATE_PROJECTION = {
    "name": 1,
    "brand": 1,
    "description": 1,
    "price": 1,
    "category": 1,
    "variants": 1,
    "images": 1,
    "inventory": 1,
    "rating": 1,
    "reviewCount": 1,
    "createdAt": 1,
    "updatedAt": 1,
    "views": 1,
    "addToCartCount": 1,
    "purchaseCount": 1,
    "popularityScore": 1,
}

# what the Python rankers read; the page itself is loaded in full by id afterwards
RANKING_PROJECTION = {
    "name": 1,
    "brand": 1,
    "description": 1,
    "variants": 1,
    "createdAt": 1,
    "views": 1,
    "addToCartCount": 1,
    "purchaseCount": 1,
    "popularityScore": 1,
}


class ProductRepo:
    """
    Product repository backed by the 'products' collection.

    Reads go through aggregation pipelines whose leading stages are built
    from a Predicate (text stages from the configured TextMatcher, then a
    structural $match). The only writes are the counter fields maintained
    by the backfill and migration operators.
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        collection_name: str = "products",
        categories_collection: str = "categories",
        matcher: Optional[TextMatcher] = None,
    ):
        self.col = db[collection_name]
        self.categories_collection = categories_collection
        self.matcher = matcher or RegexTextMatcher()

    # ----- pipeline building --------------------------------------------------

    def match_stages(self, predicate: Predicate) -> List[Dict[str, Any]]:
        stages: List[Dict[str, Any]] = []
        if predicate.text is not None:
            stages += self.matcher.stages(predicate.text)
        mql = predicate.to_mql()
        if mql:
            stages.append({"$match": mql})
        return stages

    def category_lookup_stages(self, as_field: str = "category") -> List[Dict[str, Any]]:
        return [
            {"$lookup": {
                "from": self.categories_collection,
                "localField": "category",
                "foreignField": "_id",
                "as": as_field,
            }},
            # keep products whose category is missing so totals equal the predicate count
            {"$unwind": {"path": f"${as_field}", "preserveNullAndEmptyArrays": True}},
        ]

    def page_pipeline(
        self,
        predicate: Predicate,
        sort_stages: List[Dict[str, Any]],
        skip: int,
        limit: int,
    ) -> List[Dict[str, Any]]:
        """
        One match feeding both the sorted page and the total, so the two
        cannot disagree. $facet stays after the match stages ($search must lead).
        """
        return self.match_stages(predicate) + [
            {"$facet": {
                "data": sort_stages
                + [{"$skip": skip}, {"$limit": limit}, {"$project": CANDIDATE_PROJECTION}]
                + self.category_lookup_stages(),
                "total": [{"$count": "n"}],
            }},
        ]

    def ranking_pipeline(self, predicate: Predicate) -> List[Dict[str, Any]]:
        return self.match_stages(predicate) + [{"$project": RANKING_PROJECTION}]

    # ----- reads --------------------------------------------------------------

    async def find_page(
        self,
        predicate: Predicate,
        sort_stages: List[Dict[str, Any]],
        skip: int,
        limit: int,
    ) -> Tuple[List[Product], int]:
        """(page, total) for a sort the store can evaluate, category populated."""
        docs = await self.col.aggregate(self.page_pipeline(predicate, sort_stages, skip, limit)).to_list(length=1)
        result = docs[0] if docs else {}
        counted = result.get("total") or [{"n": 0}]
        return [Product.model_validate(d) for d in result.get("data", [])], int(counted[0]["n"])

    async def find_ranking_fields(self, predicate: Predicate) -> List[Product]:
        """Every matching product, narrowed to the fields relevance and popularity ranking read."""
        docs = await self.col.aggregate(self.ranking_pipeline(predicate)).to_list(length=None)
        return [Product.model_validate(d) for d in docs]

    async def find_by_ids(self, product_ids: Sequence[str]) -> List[Product]:
        """Full documents for the given ids, category populated, in the given order."""
        if not product_ids:
            return []
        pipeline = (
            [{"$match": {"_id": {"$in": [ObjectId(pid) for pid in product_ids]}}}, {"$project": CANDIDATE_PROJECTION}]
            + self.category_lookup_stages()
        )
        docs = await self.col.aggregate(pipeline).to_list(length=None)
        by_id = {p.id: p for p in (Product.model_validate(d) for d in docs)}
        return [by_id[pid] for pid in product_ids if pid in by_id]

    async def aggregate(self, pipeline: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return await self.col.aggregate(pipeline).to_list(length=None)

    async def get_by_id(self, product_id: str) -> Optional[Product]:
        doc = await self.col.find_one({"_id": ObjectId(product_id)}, CANDIDATE_PROJECTION)
        return Product.model_validate(doc) if doc else None

    # ----- counter writes -----------------------------------------------------

    async def bulk_set_counters(self, rows: Sequence[Tuple[str, Dict[str, Any]]]) -> BulkWriteResult:
        """
        One independent UpdateOne per product: $set the given counter fields.
        Unordered, no upsert (events for deleted products are ignored).
        """
        ops = [
            UpdateOne({"_id": ObjectId(pid)}, {"$set": fields}, upsert=False)
            for pid, fields in rows
        ]
        return await self.col.bulk_write(ops, ordered=False)

    async def ensure_counter_fields(self) -> Tuple[int, int]:
        """
        Initialise missing counters to 0 without touching existing values.
        Uses an update pipeline so $ifNull is evaluated per document.
        Returns (modified, matched).
        """
        result = await self.col.update_many(
            {},
            [{"$set": {f: {"$ifNull": [f"${f}", 0]} for f in COUNTER_FIELDS}}],
        )
        return result.modified_count, result.matched_count

    async def recompute_popularity(self, weights: Dict[str, float]) -> Tuple[int, int]:
        """
        popularityScore = sum(counter * weight) from the stored counters only,
        evaluated server-side. weights maps counter field -> weight.
        Returns (modified, matched).
        """
        terms = [{"$multiply": [{"$ifNull": [f"${field}", 0]}, w]} for field, w in weights.items()]
        result = await self.col.update_many({}, [{"$set": {"popularityScore": {"$add": terms}}}])
        return result.modified_count, result.matched_count
