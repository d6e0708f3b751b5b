# catalog_search/domain/services/compiler.py
from __future__ import annotations

import logging
from typing import Optional

from bson import ObjectId
from pydantic import BaseModel

from catalog_search.domain.models.search import SearchRequest
from catalog_search.domain.repositories.category_repo import CategoryRepo
from catalog_search.domain.services.predicate import Predicate

logger = logging.getLogger(__name__)


class CompiledQuery(BaseModel):
    predicate: Predicate
    # set when the request can only match nothing (unknown category slug)
    empty: bool = False
    model_config = {"frozen": True}


def is_object_id(value: str) -> bool:
    # 24 hex chars only: a 12 character slug would otherwise pass as raw bytes
    return len(value) == 24 and ObjectId.is_valid(value)


async def resolve_category(value: str, categories: CategoryRepo) -> Optional[str]:
    if is_object_id(value):
        return value
    category = await categories.find_by_slug(value)
    return category.id if category else None


async def compile_request(req: SearchRequest, categories: CategoryRepo) -> CompiledQuery:
    """
    SearchRequest -> Predicate. Each step yields a new predicate value.
    An unknown category slug is "no matches", not an error; the predicate
    still carries every other filter so the category facet can be offered.
    """
    predicate = Predicate()
    empty = False

    if req.category:
        category_id = await resolve_category(req.category, categories)
        if category_id is None:
            logger.info("compile category=%s unresolved -> empty result", req.category)
            empty = True
        else:
            predicate = predicate.with_category(category_id)

    predicate = (
        predicate
        .with_brands(req.brands)
        .with_sizes(req.sizes)
        .with_colors(req.colors)
        .with_price(req.min_price, req.max_price)
        .with_min_rating(req.min_rating)
    )

    if req.q:
        # products of categories named like the query match even without a category filter
        category_ids = await categories.ids_matching_text(req.q)
        predicate = predicate.with_text(req.q, category_ids)

    logger.debug("compile active=%s", [d.value for d in predicate.active_dimensions()])
    return CompiledQuery(predicate=predicate, empty=empty)
