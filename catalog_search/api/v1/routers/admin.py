# catalog_search/api/v1/routers/admin.py
"""
Privileged analytics operations.
POST /admin/analytics/backfill        - recompute stored counters from the event log
POST /admin/analytics/migrate         - initialise missing counter fields to 0
POST /admin/analytics/recalc          - recompute popularityScore from stored counters
GET  /admin/analytics/products/{id}   - stored vs live counters and a daily series
"""
import logging
import time

from fastapi import APIRouter, Depends, Query

from catalog_search.api.deps import catalog_repos, redis_dep, require_admin, settings_dep
from catalog_search.api.v1.schemas.search import BackfillEnvelope, MigrateEnvelope, ProductAnalyticsEnvelope
from catalog_search.core.config import Settings, get_settings
from catalog_search.domain.repositories.catalog import CatalogRepos
from catalog_search.domain.services.backfill_svc import (
    backfill_counters_svc,
    migrate_counters_svc,
    product_analytics_svc,
    recalc_popularity_svc,
)

logger = logging.getLogger(__name__)

# require_admin runs before any handler body: unauthorized callers never reach the store
router = APIRouter(
    prefix=f"{get_settings().api_prefix}/admin/analytics",
    tags=["admin"],
    dependencies=[Depends(require_admin)],
)


@router.post("/backfill", response_model=BackfillEnvelope)
async def backfill(
    repos: CatalogRepos = Depends(catalog_repos),
    redis = Depends(redis_dep),
    settings: Settings = Depends(settings_dep),
):
    t0 = time.perf_counter()
    result = await backfill_counters_svc(repos, redis, settings)
    logger.info("Response: backfill updated=%s in %.3fs", result["updated"], time.perf_counter() - t0)
    message = "Backfill completed" if result["previewCount"] else "No events to backfill"
    return {"success": True, "message": message, "data": result}


@router.post("/migrate", response_model=MigrateEnvelope)
async def migrate(repos: CatalogRepos = Depends(catalog_repos)):
    result = await migrate_counters_svc(repos)
    return {"success": True, "message": "Analytics fields migration completed", "data": result}


@router.post("/recalc", response_model=MigrateEnvelope)
async def recalc(repos: CatalogRepos = Depends(catalog_repos)):
    result = await recalc_popularity_svc(repos)
    return {"success": True, "message": "Popularity scores recalculated", "data": result}


@router.get("/products/{product_id}", response_model=ProductAnalyticsEnvelope)
async def product_analytics(
    product_id: str,
    days: int = Query(30, ge=1, le=365, description="Length of the daily series"),
    repos: CatalogRepos = Depends(catalog_repos),
):
    return {"success": True, "data": await product_analytics_svc(repos, product_id, days)}
