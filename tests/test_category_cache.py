from datetime import datetime, timedelta

import pytest

from marketplace.services.category_cache import CategoryCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


async def _seed(db):
    base = datetime(2024, 1, 1)
    await db.categories.insert_many([
        {"name": "Rent", "slug": "rent", "sortOrder": 2, "isActive": True, "createdAt": base},
        {"name": "Buy", "slug": "buy", "sortOrder": 1, "isActive": True, "createdAt": base},
        {"name": "Lease", "slug": "lease", "sortOrder": 2, "isActive": True, "createdAt": base + timedelta(days=1)},
        {"name": "Hidden", "slug": "hidden", "sortOrder": 0, "isActive": False, "createdAt": base},
    ])

@pytest.mark.asyncio
async def test_returns_active_sorted_by_order_then_newest(db):
    await _seed(db)
    cache = CategoryCache(ttl_seconds=60, clock=FakeClock())

    result = await cache.get(db)

    assert result.from_cache is False
    assert [c["slug"] for c in result.data] == ["buy", "lease", "rent"]

@pytest.mark.asyncio
async def test_second_call_within_ttl_is_served_from_cache(db):
    await _seed(db)
    clock = FakeClock()
    cache = CategoryCache(ttl_seconds=60, clock=clock)

    first = await cache.get(db)
    await db.categories.insert_one({"name": "Plots", "slug": "plots", "sortOrder": 0, "isActive": True})
    clock.advance(59)
    second = await cache.get(db)

    assert second.from_cache is True
    assert second.data == first.data

@pytest.mark.asyncio
async def test_entry_expires_after_ttl(db):
    await _seed(db)
    clock = FakeClock()
    cache = CategoryCache(ttl_seconds=60, clock=clock)

    await cache.get(db)
    await db.categories.insert_one({"name": "Plots", "slug": "plots", "sortOrder": 0, "isActive": True})
    clock.advance(60)
    refreshed = await cache.get(db)

    assert refreshed.from_cache is False
    assert refreshed.data[0]["slug"] == "plots"

@pytest.mark.asyncio
async def test_invalidate_forces_requery(db):
    await _seed(db)
    cache = CategoryCache(ttl_seconds=60, clock=FakeClock())

    await cache.get(db)
    await db.categories.delete_many({"slug": "buy"})
    cache.invalidate()
    result = await cache.get(db)

    assert result.from_cache is False
    assert "buy" not in [c["slug"] for c in result.data]

@pytest.mark.asyncio
async def test_database_errors_propagate():
    class BrokenCollection:
        def find(self, *args, **kwargs):
            raise RuntimeError("connection refused")

    class BrokenDb:
        categories = BrokenCollection()

    cache = CategoryCache(ttl_seconds=60, clock=FakeClock())
    with pytest.raises(RuntimeError):
        await cache.get(BrokenDb())
    assert cache.is_fresh() is False
