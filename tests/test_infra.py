"""Tests for settings, logging helpers, Mongo client setup, locks and the health route."""

import logging

from catalog_search.api.deps import _bearer, is_admin_key
from catalog_search.core.config import Settings
from catalog_search.core.logging import configure_logging, json_preview
from catalog_search.db.mongo import client_options, index_models
from catalog_search.utils.locks import RedisLock


def test_admin_keys_are_split_and_trimmed():
    s = Settings(ADMIN_API_KEYS=" a, b ,,c")
    assert s.admin_api_keys == ["a", "b", "c"]
    assert is_admin_key("b", s)
    assert not is_admin_key("d", s)
    assert not is_admin_key("x", Settings(ADMIN_API_KEYS=""))


def test_bearer_parsing():
    assert _bearer("Bearer abc") == "abc"
    assert _bearer("bearer  abc ") == "abc"
    assert _bearer("Basic abc") is None
    assert _bearer(None) is None


def test_json_preview_truncates():
    out = json_preview({"k": "x" * 50}, limit=10)
    assert out.startswith('{"k":"xxx')
    assert out.endswith("[truncated]")


def test_configure_logging_accepts_level_names():
    configure_logging("debug")
    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("pymongo").level == logging.WARNING
    configure_logging(logging.INFO)


def test_client_options_tls():
    assert "tlsCAFile" in client_options(Settings(MONGO_TLS=True))
    assert "tls" not in client_options(Settings(MONGO_TLS=False, mongo_timeout_ms=100))
    assert client_options(Settings(MONGO_TLS=False, mongo_timeout_ms=100))["serverSelectionTimeoutMS"] == 100


def test_index_models_follow_collection_names():
    models = index_models(Settings(events_collection="events"))
    assert set(models) == {"products", "categories", "events"}
    [slug] = models["categories"]
    assert slug.document["unique"] is True


async def test_lock_is_exclusive(fake_redis):
    first = RedisLock(fake_redis, "job", ttl=5)
    second = RedisLock(fake_redis, "job", ttl=5)
    assert await first.acquire()
    assert not await second.acquire()
    # releasing a lock we never got must not free someone else's
    await second.release()
    assert "lock:job" in fake_redis.store
    await first.release()
    assert await second.acquire()


def test_health_reports_missing_store(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "error"
    assert body["checks"]["mongodb"]["status"] == "error"
    assert body["checks"]["redis"]["status"] == "skipped"
    assert body["collections"]["events"] == "productevents"
