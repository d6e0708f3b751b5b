# catalog_search/db/mongo.py
import logging
from typing import Any, Dict, List

import certifi
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, IndexModel
from pymongo.errors import PyMongoError

from catalog_search.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

_client: AsyncIOMotorClient | None = None
_db: AsyncIOMotorDatabase | None = None


def get_client() -> AsyncIOMotorClient:
    assert _client is not None, "Mongo client not initialized"
    return _client


def get_db() -> AsyncIOMotorDatabase:
    assert _db is not None, "Mongo DB not initialized"
    return _db


def client_options(settings: Settings) -> Dict[str, Any]:
    opts: Dict[str, Any] = {
        "uuidRepresentation": "standard",
        "serverSelectionTimeoutMS": settings.mongo_timeout_ms,
        "connectTimeoutMS": settings.mongo_timeout_ms,
        "appname": settings.APP_NAME,
    }
    if settings.MONGO_TLS:
        # explicit CA bundle: slim containers often ship without system roots
        opts.update(tls=True, tlsCAFile=certifi.where())
    return opts


def index_models(settings: Settings) -> Dict[str, List[IndexModel]]:
    """Indexes backing the filter, sort and aggregation paths of the search engine."""
    return {
        settings.products_collection: [
            IndexModel([("category", ASCENDING), ("brand", ASCENDING)], name="category_brand"),
            IndexModel([("price", ASCENDING)], name="price"),
            IndexModel([("rating", DESCENDING)], name="rating"),
            IndexModel([("createdAt", DESCENDING)], name="created_at"),
            IndexModel([("variants.sku", ASCENDING)], name="variant_sku"),
        ],
        settings.categories_collection: [
            IndexModel([("slug", ASCENDING)], name="slug", unique=True),
        ],
        settings.events_collection: [
            IndexModel([("productId", ASCENDING), ("type", ASCENDING)], name="product_type"),
            IndexModel([("createdAt", DESCENDING)], name="created_at"),
        ],
    }


async def ensure_indexes(db: AsyncIOMotorDatabase, settings: Settings) -> None:
    """create_indexes is a no-op for indexes that already exist with the same keys and options."""
    for collection, models in index_models(settings).items():
        try:
            names = await db[collection].create_indexes(models)
            logger.info("mongo indexes ok collection=%s names=%s", collection, names)
        except PyMongoError as e:
            # conflicting index options on an existing deployment; search still works
            logger.warning("mongo index creation failed collection=%s err=%s", collection, e)


async def connect():
    """
    Create the Motor client for the catalog store.
    A failed startup ping does not abort the app: the client is kept lazy so
    the first real query retries once the cluster is reachable.
    """
    global _client, _db
    settings = get_settings()

    _client = AsyncIOMotorClient(settings.MONGO_URI, **client_options(settings))
    _db = _client[settings.MONGO_DB]
    try:
        await _client.admin.command("ping")
    except PyMongoError as e:
        logger.warning("mongo ping at startup failed, connecting lazily on first query: %s", e)
        return
    logger.info("mongo connected db=%s (ping ok)", settings.MONGO_DB)

    if settings.mongo_ensure_indexes:
        await ensure_indexes(_db, settings)


async def disconnect():
    global _client, _db
    if _client:
        _client.close()
    _client = None
    _db = None
