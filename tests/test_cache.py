"""Tests for the catalog cache backends."""

from __future__ import annotations

from pathlib import Path

import pytest

from models import CatalogItem
from storage import MemoryCatalogCache, SQLiteCatalogCache, get_cache
from utils.exceptions import CacheUnavailableError


def _item(title: str = "Arrival", year: int = 2016, **overrides) -> CatalogItem:
    payload = {
        "title": title,
        "year": year,
        "tags": ["Science Fiction", "Drama"],
        "rating": 7.9,
        "creator": "Denis Villeneuve",
        "description": "A linguist works with the military to communicate with alien lifeforms.",
        "classification": "PG-13",
        "themes": ["Communication", "First contact"],
    }
    payload.update(overrides)
    return CatalogItem(**payload)


@pytest.fixture(params=["memory", "sqlite"])
def cache(request, tmp_path: Path):
    if request.param == "memory":
        backend = MemoryCatalogCache()
    else:
        backend = SQLiteCatalogCache(db_path=str(tmp_path / "cache.db"))
    backend.initialize()
    yield backend
    backend.close()


def test_get_after_set_returns_equal_item(cache) -> None:
    item = _item()
    cache.set("catalog://movies/arrival", item)

    loaded = cache.get("catalog://movies/arrival")

    assert loaded == item
    assert loaded.model_dump() == item.model_dump()


def test_get_missing_key_returns_none(cache) -> None:
    assert cache.get("catalog://movies/missing") is None


def test_get_many_returns_only_cached_subset(cache) -> None:
    first = _item("Arrival", 2016)
    second = _item("Interstellar", 2014)
    cache.set_many([("a", first), ("b", second)])

    found = cache.get_many(["a", "missing", "b", "other"])

    assert set(found) == {"a", "b"}
    assert found["a"] == first
    assert found["b"] == second


def test_set_many_upserts_existing_keys(cache) -> None:
    cache.set("a", _item(rating=5.0))
    cache.set_many([("a", _item(rating=9.0))])

    assert cache.get("a").rating == 9.0
    assert cache.stats().count == 1


def test_stats_reports_count_and_bounds(cache) -> None:
    assert cache.stats().count == 0
    assert cache.stats().oldest is None

    cache.set_many([("a", _item("A", 2001)), ("b", _item("B", 2002))])
    stats = cache.stats()

    assert stats.count == 2
    assert stats.oldest is not None
    assert stats.newest is not None
    assert stats.oldest <= stats.newest


def test_sqlite_cache_persists_across_instances(tmp_path: Path) -> None:
    db_path = str(tmp_path / "persist.db")
    writer = SQLiteCatalogCache(db_path=db_path)
    writer.initialize()
    writer.set(_item().item_key, _item())
    writer.close()

    reader = SQLiteCatalogCache(db_path=db_path)
    reader.initialize()
    try:
        assert reader.get("arrival_2016") == _item()
    finally:
        reader.close()


def test_sqlite_initialize_failure_raises_unavailable(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    cache = SQLiteCatalogCache(db_path=str(blocker / "cache.db"))

    with pytest.raises(CacheUnavailableError):
        cache.initialize()


def test_sqlite_cache_degrades_to_empty_when_unavailable(tmp_path: Path) -> None:
    cache = SQLiteCatalogCache(db_path=str(tmp_path / "cache.db"))

    # not initialized: reads are misses and writes are dropped
    cache.set("a", _item())
    assert cache.get_many(["a"]) == {}
    assert cache.stats().count == 0

    cache.initialize()
    cache.set("a", _item())
    cache.close()
    assert cache.get("a") is None


def test_get_cache_factory_builds_requested_backend(tmp_path: Path) -> None:
    assert isinstance(get_cache(provider="memory"), MemoryCatalogCache)
    sqlite_cache = get_cache(provider="sqlite", db_path=str(tmp_path / "f.db"))
    assert isinstance(sqlite_cache, SQLiteCatalogCache)
    with pytest.raises(ValueError):
        get_cache(provider="redis")
