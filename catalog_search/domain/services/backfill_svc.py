# catalog_search/domain/services/backfill_svc.py
"""
Privileged write path: counter backfill, counter migration, per-product analytics.

Backfill is a last-writer-wins recompute. Every product is an independent
UpdateOne, so a partial failure leaves some products updated and others
untouched; rerunning recomputes the same totals from the event log.
"""
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from pymongo.errors import BulkWriteError, PyMongoError
from redis.asyncio import Redis

from catalog_search.core.config import Settings
from catalog_search.core.errors import CatalogStoreError, InvalidRequest, OperationInProgress, ResourceNotFound
from catalog_search.domain.models.product import EventTotals
from catalog_search.domain.repositories.catalog import CatalogRepos
from catalog_search.domain.services.compiler import is_object_id
from catalog_search.domain.services.constants import POP_ADD_WEIGHT, POP_PURCHASE_WEIGHT, POP_VIEW_WEIGHT
from catalog_search.domain.services.popularity import popularity_score
from catalog_search.utils.locks import RedisLock

logger = logging.getLogger(__name__)

BACKFILL_LOCK_KEY = "backfill:counters"


def counter_fields(t: EventTotals) -> Dict[str, Any]:
    return {
        "views": t.views,
        "addToCartCount": t.adds,
        "purchaseCount": t.purchases,
        "popularityScore": popularity_score(t.views, t.adds, t.purchases),
    }


def _batches(rows: Sequence[Tuple[str, Dict[str, Any]]], size: int) -> Iterator[Sequence[Tuple[str, Dict[str, Any]]]]:
    for i in range(0, len(rows), size):
        yield rows[i:i + size]


async def _backfill(repos: CatalogRepos, settings: Settings) -> Dict[str, Any]:
    t0 = time.perf_counter()
    try:
        totals = await repos.events.totals_all()
    except PyMongoError as e:
        logger.error("backfill event aggregation failed err=%s", e)
        raise CatalogStoreError("Failed to backfill analytics")

    # sorted by product id so repeated runs write and preview in the same order
    rows: List[Tuple[str, Dict[str, Any]]] = []
    for pid, t in sorted(totals.items()):
        if not is_object_id(pid):
            logger.warning("backfill skipping event productId=%r (not an ObjectId)", pid)
            continue
        rows.append((pid, counter_fields(t)))
    logger.info("backfill start products=%s batch_size=%s", len(rows), settings.backfill_batch_size)

    updated = 0
    failed_batches: List[int] = []
    for n, batch in enumerate(_batches(rows, settings.backfill_batch_size)):
        try:
            result = await repos.products.bulk_set_counters(batch)
            # events of deleted products match nothing and are not counted
            updated += result.matched_count
            logger.debug("backfill batch=%s size=%s matched=%s modified=%s", n, len(batch), result.matched_count, result.modified_count)
        except BulkWriteError as e:
            write_errors = e.details.get("writeErrors", []) if e.details else []
            # unordered: the writes that did go through still count
            updated += (e.details or {}).get("nMatched", 0)
            logger.error("backfill batch=%s failed write_errors=%s first=%s", n, len(write_errors), write_errors[:1])
            failed_batches.append(n)
        except PyMongoError as e:
            logger.error("backfill batch=%s failed err=%s", n, e)
            failed_batches.append(n)

    if failed_batches:
        # safe to retry the whole run
        raise CatalogStoreError("Failed to backfill analytics", details={"failed_batches": failed_batches, "updated": updated})

    preview = [
        {
            "productId": pid,
            "views": fields["views"],
            "adds": fields["addToCartCount"],
            "purchases": fields["purchaseCount"],
            "popularity": fields["popularityScore"],
        }
        for pid, fields in rows[: settings.backfill_preview_size]
    ]
    logger.info("backfill done updated=%s time=%.3fs", updated, time.perf_counter() - t0)
    return {"updated": updated, "previewCount": len(preview), "preview": preview}


async def backfill_counters_svc(repos: CatalogRepos, redis: Optional[Redis], settings: Settings) -> Dict[str, Any]:
    """
    Recompute stored counters and popularity from the whole event log.
    With Redis available, a second concurrent run is refused instead of
    duplicating the work.
    """
    lock = RedisLock(redis, BACKFILL_LOCK_KEY, ttl=settings.backfill_lock_ttl) if redis is not None else None
    if lock is not None and not await lock.acquire():
        raise OperationInProgress("Backfill already running")
    try:
        return await _backfill(repos, settings)
    finally:
        if lock is not None:
            await lock.release()


async def migrate_counters_svc(repos: CatalogRepos) -> Dict[str, int]:
    """Ensure every product carries the four counter fields (missing -> 0, existing kept)."""
    try:
        modified, matched = await repos.products.ensure_counter_fields()
    except PyMongoError as e:
        logger.error("counter migration failed err=%s", e)
        raise CatalogStoreError("Failed to migrate analytics fields")
    logger.info("counter migration done matched=%s modified=%s", matched, modified)
    return {"modified": modified, "matched": matched}


async def recalc_popularity_svc(repos: CatalogRepos) -> Dict[str, int]:
    """Refresh stored popularityScore from the stored counters (no event aggregation)."""
    weights = {
        "purchaseCount": POP_PURCHASE_WEIGHT,
        "addToCartCount": POP_ADD_WEIGHT,
        "views": POP_VIEW_WEIGHT,
    }
    try:
        modified, matched = await repos.products.recompute_popularity(weights)
    except PyMongoError as e:
        logger.error("popularity recalc failed err=%s", e)
        raise CatalogStoreError("Failed to recalculate popularity")
    logger.info("popularity recalc done matched=%s modified=%s", matched, modified)
    return {"modified": modified, "matched": matched}


async def product_analytics_svc(repos: CatalogRepos, product_id: str, days: int = 30) -> Dict[str, Any]:
    """
    Admin view of one product: stored counters next to the live event
    totals, plus a per-day series for the last `days` days.
    """
    if not is_object_id(product_id):
        raise InvalidRequest("Invalid product ID format", field="id")

    since = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0) - timedelta(days=days - 1)
    try:
        product = await repos.products.get_by_id(product_id)
        if product is None:
            raise ResourceNotFound("Product", product_id)
        live = (await repos.events.totals_for([product_id])).get(product_id, EventTotals())
        series = await repos.events.daily_series(product_id, since)
    except PyMongoError as e:
        logger.error("product analytics failed product_id=%s days=%s err=%s", product_id, days, e)
        raise CatalogStoreError("Failed to load analytics")

    return {
        "product": {
            "_id": product.id,
            "name": product.name,
            **counter_fields(live),
        },
        "stored": {
            "views": product.views,
            "addToCartCount": product.add_to_cart_count,
            "purchaseCount": product.purchase_count,
            "popularityScore": product.popularity_score,
        },
        "series": series,
    }
