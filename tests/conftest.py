"""Shared test fixtures: in-memory stand-ins for the catalog store and Redis."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest
from bson import ObjectId
from pymongo.errors import BulkWriteError
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from catalog_search.core.config import Settings
from catalog_search.domain.models.product import Category, EventTotals, Product
from catalog_search.domain.repositories.category_repo import CategoryRepo
from catalog_search.domain.repositories.catalog import CatalogRepos
from catalog_search.domain.repositories.product_repo import ProductRepo
from catalog_search.domain.services.text_match import RegexTextMatcher

ADMIN_KEY = "test-admin-key"

SHOES_ID = "64b000000000000000000001"
SHIRTS_ID = "64b000000000000000000002"

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def oid(n: int) -> str:
    return str(ObjectId(f"{n:024x}"))


class FakeProductRepo(ProductRepo):
    """Real pipeline building, canned results instead of a collection."""

    def __init__(self, products: Optional[List[Product]] = None, aggregate_results: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self.categories_collection = "categories"
        self.matcher = RegexTextMatcher()
        self.products = list(products or [])
        self.aggregate_results = aggregate_results or {}
        self.predicates = []
        self.sorts: List[List[Dict[str, Any]]] = []
        self.loaded_ids: List[List[str]] = []
        self.pipelines: List[List[Dict[str, Any]]] = []
        self.counter_writes: List[List[Any]] = []
        self.fail_batches = set()
        self.deleted_ids = set()
        self.migrated = (0, 0)

    async def find_page(self, predicate, sort_stages, skip, limit):
        # products are served in list order; sorting is the store's job
        self.predicates.append(predicate)
        self.sorts.append(sort_stages)
        return list(self.products[skip:skip + limit]), len(self.products)

    async def find_ranking_fields(self, predicate):
        self.predicates.append(predicate)
        return list(self.products)

    async def find_by_ids(self, product_ids):
        self.loaded_ids.append(list(product_ids))
        by_id = {p.id: p for p in self.products}
        return [by_id[pid] for pid in product_ids if pid in by_id]

    async def aggregate(self, pipeline):
        self.pipelines.append(pipeline)
        return list(self.aggregate_results.get(facet_key(pipeline), []))

    async def get_by_id(self, product_id):
        return next((p for p in self.products if p.id == product_id), None)

    async def bulk_set_counters(self, rows):
        n = len(self.counter_writes)
        self.counter_writes.append(list(rows))
        if n in self.fail_batches:
            raise BulkWriteError({"writeErrors": [{"index": 0, "errmsg": "boom"}]})
        matched = len([pid for pid, _ in rows if pid not in self.deleted_ids])
        return SimpleNamespace(matched_count=matched, modified_count=matched)

    async def ensure_counter_fields(self):
        return self.migrated

    async def recompute_popularity(self, weights):
        self.popularity_weights = dict(weights)
        return self.migrated


def facet_key(pipeline: List[Dict[str, Any]]) -> str:
    """Which facet a pipeline computes, recognised by its group expressions."""
    text = repr(pipeline)
    if "'$variants.size'" in text:
        return "size"
    if "'$variants.color'" in text:
        return "color"
    if "'$cat.slug'" in text:
        return "category"
    if "'$first': '$brand'" in text:
        return "brand"
    if "'$min': '$price'" in text:
        return "price"
    if "'$floor'" in text:
        return "rating"
    return "other"


class FakeCategoryRepo:
    def __init__(self, categories: Optional[List[Category]] = None):
        self.categories = list(categories or [])
        self.slug_lookups: List[str] = []

    async def find_by_slug(self, slug):
        self.slug_lookups.append(slug)
        return next((c for c in self.categories if c.slug == slug.lower()), None)

    async def ids_matching_text(self, query):
        q = query.lower()
        return sorted(c.id for c in self.categories if q in c.name.lower() or q in c.slug)


class FakeEventRepo:
    def __init__(self, totals: Optional[Dict[str, EventTotals]] = None):
        self.totals = dict(totals or {})
        self.requested: List[List[str]] = []

    async def totals_for(self, product_ids):
        self.requested.append(list(product_ids))
        return {pid: self.totals[pid] for pid in product_ids if pid in self.totals}

    async def totals_all(self):
        return dict(self.totals)

    async def daily_series(self, product_id, since):
        return [{"day": "2024-01-01", "type": "view", "total": 2}]


class FakeRedis:
    """The subset of redis.asyncio.Redis used by RedisLock."""

    def __init__(self):
        self.store: Dict[str, str] = {}

    async def set(self, key, value, nx=False, ex=None):
        if nx and key in self.store:
            return None
        self.store[key] = value
        return True

    async def eval(self, script, numkeys, key, token):
        if self.store.get(key) == token:
            del self.store[key]
            return 1
        return 0


@pytest.fixture
def settings():
    return Settings(ADMIN_API_KEYS=ADMIN_KEY, backfill_batch_size=2, backfill_preview_size=2)


@pytest.fixture
def make_product():
    """Product factory with sensible defaults; override any field by its Mongo name."""
    counter = {"n": 0}

    def _make(**fields) -> Product:
        counter["n"] += 1
        doc = {
            "_id": oid(counter["n"]),
            "name": f"Product {counter['n']}",
            "brand": "Generic",
            "price": 10.0,
            "rating": 3.0,
            "createdAt": BASE_TIME + timedelta(days=counter["n"]),
        }
        doc.update(fields)
        return Product.model_validate(doc)

    return _make


@pytest.fixture
def categories():
    return [
        Category.model_validate({"_id": SHOES_ID, "name": "Shoes", "slug": "shoes"}),
        Category.model_validate({"_id": SHIRTS_ID, "name": "Shirts", "slug": "shirts"}),
    ]


@pytest.fixture
def repos(categories):
    return CatalogRepos(
        products=FakeProductRepo(),
        categories=FakeCategoryRepo(categories),
        events=FakeEventRepo(),
    )


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def client(repos, settings, fake_redis):
    from catalog_search.api.deps import catalog_repos, redis_dep, settings_dep
    from catalog_search.main import app

    app.dependency_overrides[catalog_repos] = lambda: repos
    app.dependency_overrides[settings_dep] = lambda: settings
    app.dependency_overrides[redis_dep] = lambda: fake_redis
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"X-API-Key": ADMIN_KEY}


@pytest.fixture
def mongo_db():
    """In-memory Motor database; pipelines really run against seeded documents."""
    return AsyncMongoMockClient()["catalog_test"]


@pytest.fixture
def store_repos(mongo_db):
    return CatalogRepos(
        products=ProductRepo(mongo_db),
        categories=CategoryRepo(mongo_db),
        events=FakeEventRepo(),
    )
