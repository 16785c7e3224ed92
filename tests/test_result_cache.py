import pytest

from vision_testgen.core.cache import ResultCache
from vision_testgen.models.schemas import GenerationResult


def result(label: str) -> GenerationResult:
    return GenerationResult(metadata={"label": label})


def test_get_returns_none_on_miss():
    cache = ResultCache()
    assert cache.get("missing") is None
    assert "missing" not in cache


def test_put_overwrites_existing_entry():
    cache = ResultCache()
    cache.put("key", result("first"))
    cache.put("key", result("second"))
    assert cache.get("key").metadata["label"] == "second"
    assert len(cache) == 1


def test_least_recently_used_entry_is_evicted():
    cache = ResultCache(max_entries=2)
    cache.put("a", result("a"))
    cache.put("b", result("b"))
    cache.get("a")
    cache.put("c", result("c"))
    assert "a" in cache
    assert "b" not in cache
    assert "c" in cache


def test_unbounded_cache_keeps_everything():
    cache = ResultCache(max_entries=None)
    for i in range(500):
        cache.put(str(i), result(str(i)))
    assert len(cache) == 500


def test_clear_and_clear_all():
    cache = ResultCache()
    cache.put("a", result("a"))
    cache.put("b", result("b"))
    cache.clear("a")
    assert "a" not in cache
    cache.clear_all()
    assert len(cache) == 0


def test_invalid_capacity_is_rejected():
    with pytest.raises(ValueError):
        ResultCache(max_entries=0)
