# catalog_search/api/v1/routers/health.py
import subprocess
import time
from typing import Any, Dict

from fastapi import APIRouter

from catalog_search.core.config import get_settings
from catalog_search.db import mongo
from catalog_search.db.redis import get_redis  # None when Redis is not configured

router = APIRouter(tags=["health"])
START_TIME = time.time()


def _git_sha() -> str:
    try:
        return subprocess.check_output(["git", "rev-parse", "--short", "HEAD"], stderr=subprocess.DEVNULL).decode().strip()
    except (OSError, subprocess.CalledProcessError):
        return "unknown"


async def _mongo_check() -> Dict[str, Any]:
    t0 = time.perf_counter()
    try:
        await mongo.get_db().command("ping")
    except Exception as e:
        return {"status": "error", "error": str(e)}
    return {"status": "ok", "latency_ms": round((time.perf_counter() - t0) * 1000, 1)}


async def _redis_check() -> Dict[str, Any]:
    r = get_redis()
    if r is None:
        # only the backfill lock uses Redis
        return {"status": "skipped"}
    try:
        await r.ping()
    except Exception as e:
        return {"status": "error", "error": str(e)}
    return {"status": "ok"}


@router.get("/health")
async def health():
    """Liveness plus catalog store reachability. Never raises: failures are reported in the body."""
    settings = get_settings()
    checks = {"mongodb": await _mongo_check(), "redis": await _redis_check()}
    healthy = all(c["status"] in ("ok", "skipped") for c in checks.values())
    return {
        "status": "ok" if healthy else "error",
        "app_name": settings.APP_NAME,
        "env": settings.APP_ENV,
        "version": settings.GIT_SHA if settings.GIT_SHA != "unknown" else _git_sha(),
        "uptime_seconds": int(time.time() - START_TIME),
        "text_matcher": settings.text_matcher,
        "collections": {
            "products": settings.products_collection,
            "categories": settings.categories_collection,
            "events": settings.events_collection,
        },
        "checks": checks,
        "timestamp": int(time.time()),
    }
