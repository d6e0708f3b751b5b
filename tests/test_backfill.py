"""Tests for counter backfill, migration and per-product analytics."""

import pytest

from catalog_search.core.errors import CatalogStoreError, InvalidRequest, OperationInProgress, ResourceNotFound
from catalog_search.domain.models.product import EventTotals
from catalog_search.domain.services.backfill_svc import (
    BACKFILL_LOCK_KEY,
    backfill_counters_svc,
    counter_fields,
    migrate_counters_svc,
    product_analytics_svc,
    recalc_popularity_svc,
)

A = "64c000000000000000000001"
B = "64c000000000000000000002"
C = "64c000000000000000000003"


@pytest.fixture
def event_totals(repos):
    repos.events.totals = {
        C: EventTotals(views=1),
        A: EventTotals(views=10, adds=2, purchases=1),
        "not-an-id": EventTotals(views=99),
        B: EventTotals(purchases=3),
    }
    return repos.events.totals


def test_counter_fields():
    assert counter_fields(EventTotals(views=10, adds=2, purchases=1)) == {
        "views": 10,
        "addToCartCount": 2,
        "purchaseCount": 1,
        "popularityScore": 2 + 4 + 5,
    }


class TestBackfill:
    async def test_writes_in_batches_sorted_by_id(self, repos, settings, fake_redis, event_totals):
        result = await backfill_counters_svc(repos, fake_redis, settings)

        writes = repos.products.counter_writes
        assert [[pid for pid, _ in batch] for batch in writes] == [[A, B], [C]]
        assert result["updated"] == 3
        assert result["previewCount"] == 2
        assert result["preview"][1] == {"productId": B, "views": 0, "adds": 0, "purchases": 3, "popularity": 15}

    async def test_idempotent(self, repos, settings, fake_redis, event_totals):
        first = await backfill_counters_svc(repos, fake_redis, settings)
        second = await backfill_counters_svc(repos, fake_redis, settings)
        writes = repos.products.counter_writes
        assert writes[:2] == writes[2:]
        assert first == second

    async def test_lock_released(self, repos, settings, fake_redis, event_totals):
        await backfill_counters_svc(repos, fake_redis, settings)
        assert fake_redis.store == {}

    async def test_concurrent_run_refused(self, repos, settings, fake_redis, event_totals):
        fake_redis.store[f"lock:{BACKFILL_LOCK_KEY}"] = "someone-else"
        with pytest.raises(OperationInProgress):
            await backfill_counters_svc(repos, fake_redis, settings)
        assert repos.products.counter_writes == []
        assert fake_redis.store[f"lock:{BACKFILL_LOCK_KEY}"] == "someone-else"

    async def test_runs_without_redis(self, repos, settings, event_totals):
        result = await backfill_counters_svc(repos, None, settings)
        assert result["updated"] == 3

    async def test_failed_batch_reports_after_all_batches(self, repos, settings, fake_redis, event_totals):
        repos.products.fail_batches = {0}
        with pytest.raises(CatalogStoreError) as exc:
            await backfill_counters_svc(repos, fake_redis, settings)
        assert len(repos.products.counter_writes) == 2
        assert exc.value.details == {"failed_batches": [0], "updated": 1}
        assert fake_redis.store == {}

    async def test_deleted_products_are_not_counted(self, repos, settings, fake_redis, event_totals):
        repos.products.deleted_ids = {C}
        result = await backfill_counters_svc(repos, fake_redis, settings)
        assert result["updated"] == 2
        assert [[pid for pid, _ in batch] for batch in repos.products.counter_writes] == [[A, B], [C]]

    async def test_no_events(self, repos, settings, fake_redis):
        result = await backfill_counters_svc(repos, fake_redis, settings)
        assert result == {"updated": 0, "previewCount": 0, "preview": []}


async def test_migrate(repos):
    repos.products.migrated = (4, 7)
    assert await migrate_counters_svc(repos) == {"modified": 4, "matched": 7}


class TestProductAnalytics:
    async def test_invalid_id(self, repos):
        with pytest.raises(InvalidRequest, match="Invalid product ID format"):
            await product_analytics_svc(repos, "abc")

    async def test_missing_product(self, repos):
        with pytest.raises(ResourceNotFound):
            await product_analytics_svc(repos, A)

    async def test_stored_and_live(self, repos, make_product):
        p = make_product(views=3, popularityScore=0.6)
        repos.products.products = [p]
        repos.events.totals = {p.id: EventTotals(views=5, purchases=1)}

        data = await product_analytics_svc(repos, p.id, days=7)

        assert data["product"]["_id"] == p.id
        assert data["product"]["views"] == 5
        assert data["product"]["popularityScore"] == 6
        assert data["stored"]["views"] == 3
        assert data["series"] == [{"day": "2024-01-01", "type": "view", "total": 2}]


async def test_recalc_uses_popularity_weights(repos):
    repos.products.migrated = (2, 5)
    assert await recalc_popularity_svc(repos) == {"modified": 2, "matched": 5}
    assert repos.products.popularity_weights == {"purchaseCount": 5, "addToCartCount": 2, "views": 0.2}
