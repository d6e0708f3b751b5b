# catalog_search/domain/repositories/category_repo.py
from __future__ import annotations

import re
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from catalog_search.domain.models.product import Category


class CategoryRepo:
    """Read-only access to the 'categories' collection (slug lookups for the compiler)."""

    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str = "categories"):
        self.col = db[collection_name]

    async def find_by_slug(self, slug: str) -> Optional[Category]:
        doc = await self.col.find_one({"slug": slug.lower()}, {"_id": 1, "name": 1, "slug": 1})
        return Category.model_validate(doc) if doc else None

    async def ids_matching_text(self, query: str) -> List[str]:
        """Ids of categories whose name or slug contains the query (case-insensitive)."""
        pattern = {"$regex": re.escape(query), "$options": "i"}
        cursor = self.col.find({"$or": [{"name": pattern}, {"slug": pattern}]}, {"_id": 1})
        return sorted([str(doc["_id"]) async for doc in cursor])
