# catalog_search/domain/repositories/catalog.py
from __future__ import annotations

from dataclasses import dataclass

from motor.motor_asyncio import AsyncIOMotorDatabase

from catalog_search.core.config import Settings
from catalog_search.domain.repositories.category_repo import CategoryRepo
from catalog_search.domain.repositories.event_repo import EventRepo
from catalog_search.domain.repositories.product_repo import ProductRepo
from catalog_search.domain.services.text_match import get_text_matcher


@dataclass(frozen=True)
class CatalogRepos:
    """The narrow view of the catalog store the search engine consumes."""
    products: ProductRepo
    categories: CategoryRepo
    events: EventRepo


def build_repos(db: AsyncIOMotorDatabase, settings: Settings) -> CatalogRepos:
    return CatalogRepos(
        products=ProductRepo(
            db,
            collection_name=settings.products_collection,
            categories_collection=settings.categories_collection,
            matcher=get_text_matcher(settings),
        ),
        categories=CategoryRepo(db, collection_name=settings.categories_collection),
        events=EventRepo(db, collection_name=settings.events_collection),
    )
