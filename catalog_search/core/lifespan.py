# catalog_search/core/lifespan.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from catalog_search.core.config import get_settings
from catalog_search.db import mongo, redis as r

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()

    # --- Startup ---
    # Mongo is the catalog store: required when configured
    if settings.MONGO_URI:
        await mongo.connect()
    else:
        logger.warning("no MONGO_URI provided, skipping Mongo connection")

    # Redis is optional
    await r.connect()

    yield

    # --- Shutdown ---
    try:
        await r.disconnect()
    except Exception as e:
        logger.warning("redis disconnect failed: %s", e)

    try:
        await mongo.disconnect()
        logger.info("mongo disconnected")
    except Exception as e:
        logger.warning("mongo disconnect failed: %s", e)
