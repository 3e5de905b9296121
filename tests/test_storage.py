import pytest

from eh2telegraph.storage import LruStorage, SimpleMemStorage


@pytest.fixture(params=["mem", "lru"])
def storage(request):
    if request.param == "mem":
        return SimpleMemStorage()
    return LruStorage(16)


@pytest.mark.asyncio
async def test_missing_key(storage):
    assert await storage.get("nothing") is None


@pytest.mark.asyncio
async def test_set_then_get(storage):
    await storage.set("e-hentai|/g/1/abc", "https://telegra.ph/page", 60)
    assert await storage.get("e-hentai|/g/1/abc") == "https://telegra.ph/page"


@pytest.mark.asyncio
async def test_overwrite(storage):
    await storage.set("k", "first")
    await storage.set("k", "second")
    assert await storage.get("k") == "second"


@pytest.mark.asyncio
async def test_delete(storage):
    await storage.set("k", "v")
    await storage.delete("k")
    assert await storage.get("k") is None


@pytest.mark.asyncio
async def test_delete_missing_leaves_others(storage):
    await storage.set("keep", "v")
    await storage.delete("absent")
    assert await storage.get("keep") == "v"


@pytest.mark.asyncio
async def test_lru_evicts_least_recently_used():
    lru = LruStorage(2)
    await lru.set("a", "1")
    await lru.set("b", "2")
    assert await lru.get("a") == "1"
    await lru.set("c", "3")
    assert await lru.get("b") is None
    assert await lru.get("a") == "1"
    assert await lru.get("c") == "3"


@pytest.mark.asyncio
async def test_lru_zero_capacity_keeps_nothing():
    lru = LruStorage(0)
    await lru.set("a", "1")
    assert await lru.get("a") is None


def test_lru_negative_capacity_rejected():
    with pytest.raises(ValueError):
        LruStorage(-1)