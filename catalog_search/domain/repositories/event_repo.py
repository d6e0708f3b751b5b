# catalog_search/domain/repositories/event_repo.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from catalog_search.domain.models.product import EventTotals


def totals_pipeline(match: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    """
    Sum event quantities per (productId, type), then pivot to one row per product:
      { _id: productId, views, adds, purchases }
    An absent quantity counts as 1.
    """
    pipeline: List[Dict[str, Any]] = []
    if match:
        pipeline.append({"$match": match})
    pipeline += [
        {"$group": {
            "_id": {"productId": "$productId", "type": "$type"},
            "total": {"$sum": {"$ifNull": ["$quantity", 1]}},
        }},
        {"$group": {
            "_id": "$_id.productId",
            "views": {"$sum": {"$cond": [{"$eq": ["$_id.type", "view"]}, "$total", 0]}},
            "adds": {"$sum": {"$cond": [{"$eq": ["$_id.type", "add_to_cart"]}, "$total", 0]}},
            "purchases": {"$sum": {"$cond": [{"$eq": ["$_id.type", "purchase"]}, "$total", 0]}},
        }},
    ]
    return pipeline


def _to_totals(docs: List[Dict[str, Any]]) -> Dict[str, EventTotals]:
    return {
        str(d["_id"]): EventTotals(
            views=int(d.get("views") or 0),
            adds=int(d.get("adds") or 0),
            purchases=int(d.get("purchases") or 0),
        )
        for d in docs
        if d.get("_id") is not None
    }


class EventRepo:
    """
    Read-only adapter over the append-only ProductEvent log.
    Events are written by external instrumentation; nothing here mutates them.
    """

    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str = "productevents"):
        self.col = db[collection_name]

    async def totals_for(self, product_ids: List[str]) -> Dict[str, EventTotals]:
        if not product_ids:
            return {}
        match = {"productId": {"$in": [ObjectId(pid) for pid in product_ids]}}
        docs = await self.col.aggregate(totals_pipeline(match)).to_list(length=None)
        return _to_totals(docs)

    async def totals_all(self) -> Dict[str, EventTotals]:
        docs = await self.col.aggregate(totals_pipeline()).to_list(length=None)
        return _to_totals(docs)

    async def daily_series(self, product_id: str, since: datetime) -> List[Dict[str, Any]]:
        """Per-day, per-type totals since `since`, oldest day first."""
        pipeline = [
            {"$match": {"productId": ObjectId(product_id), "createdAt": {"$gte": since}}},
            {"$group": {
                "_id": {
                    "day": {"$dateToString": {"format": "%Y-%m-%d", "date": "$createdAt"}},
                    "type": "$type",
                },
                "total": {"$sum": {"$ifNull": ["$quantity", 1]}},
            }},
            {"$project": {"_id": 0, "day": "$_id.day", "type": "$_id.type", "total": 1}},
            {"$sort": {"day": 1, "type": 1}},
        ]
        return await self.col.aggregate(pipeline).to_list(length=None)
