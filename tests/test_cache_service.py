"""Cache keys, freshness, stale fallback and pruning."""
import pytest

from services.cache_service import CacheStore, DirectoryCacheBackend, MemoryCacheBackend, build_cache, key_for
from services.config import EngineConfig
from services.exceptions import CacheError

URL = "http://host:8080/xbox/data/search.json?x=1&y=2#frag%20"


def test_key_for_replaces_unsafe_characters():
    key = key_for(URL)
    assert key == "http__host_8080_xbox_data_search.json_x_1_y_2_frag_20"
    for ch in ":/?&=%#":
        assert ch not in key


@pytest.mark.parametrize("store", ["memory_cache", "disk_cache"])
def test_freshness_follows_clock(store, request, clock):
    cache = request.getfixturevalue(store)
    assert cache.write(URL, "payload")
    hit = cache.read(URL, max_age=60)
    assert hit is not None and hit.is_fresh and hit.text == "payload"

    clock.advance(61)
    assert cache.read(URL, max_age=60) is None
    stale = cache.read(URL, max_age=60, allow_stale=True)
    assert stale is not None
    assert not stale.is_fresh
    assert stale.payload == b"payload"


def test_miss_returns_none(memory_cache):
    assert memory_cache.read("http://nowhere/x", max_age=60, allow_stale=True) is None


@pytest.mark.parametrize("tick", [1.0, 0.0])
@pytest.mark.parametrize("backend_kind", ["memory", "disk"])
def test_count_eviction_drops_oldest(backend_kind, tick, tmp_path, clock):
    backend = MemoryCacheBackend() if backend_kind == "memory" else DirectoryCacheBackend(tmp_path)
    cache = CacheStore(backend, max_entries=3, max_bytes=1 << 20, max_age=3600, clock=clock)
    # Keys sort opposite to write order so same-tick writes cannot lean on key order.
    urls = [f"http://h/{i}.json" for i in (3, 2, 1, 0)]
    for url in urls:
        assert cache.write(url, "{}")
        clock.advance(tick)

    assert cache.read(urls[0], 3600) is None
    for url in urls[1:]:
        assert cache.read(url, 3600) is not None
    assert cache.stats()[0] == 3


def test_byte_ceiling_evicts_until_within_limit(clock):
    cache = CacheStore(MemoryCacheBackend(), max_entries=10, max_bytes=25, max_age=3600, clock=clock)
    for i in range(3):
        cache.write(f"http://h/{i}", "x" * 10)
        clock.advance(1)
    count, total = cache.stats()
    assert (count, total) == (2, 20)
    assert cache.read("http://h/0", 3600) is None


def test_prune_removes_entries_past_max_age(memory_cache, clock):
    memory_cache.write("http://h/old", "1")
    clock.advance(6 * 3600 + 1)
    memory_cache.write("http://h/new", "2")
    assert memory_cache.read("http://h/old", 10**9, allow_stale=True) is None
    assert memory_cache.read("http://h/new", 60) is not None


def test_flush_deletes_everything(disk_cache):
    disk_cache.write("http://h/a", "1")
    disk_cache.write("http://h/b", "2")
    disk_cache.flush()
    assert disk_cache.stats() == (0, 0)


def test_directory_backend_leaves_no_temp_files(tmp_path, clock):
    backend = DirectoryCacheBackend(tmp_path / "c")
    backend.write("k", b"data", clock())
    assert [p.name for p in (tmp_path / "c").iterdir()] == ["k"]
    assert backend.read("k") == (b"data", pytest.approx(clock(), abs=1))


class _BrokenBackend(MemoryCacheBackend):
    def write(self, key, data, mtime):
        raise CacheError("disk full")

    def read(self, key):
        raise CacheError("io error")


def test_backend_failures_degrade_to_miss(clock):
    cache = CacheStore(_BrokenBackend(), max_entries=4, max_bytes=100, max_age=60, clock=clock)
    assert cache.write("http://h/a", "1") is False
    assert cache.read("http://h/a", 60, allow_stale=True) is None


def test_build_cache_selects_backend(tmp_path):
    assert isinstance(build_cache(EngineConfig()).backend, MemoryCacheBackend)
    store = build_cache(EngineConfig(cache_dir=tmp_path, cache_max_entries=7))
    assert isinstance(store.backend, DirectoryCacheBackend)
    assert store.max_entries == 7


def test_build_cache_flushes_on_start(tmp_path, clock):
    DirectoryCacheBackend(tmp_path).write("stale", b"x", clock())
    build_cache(EngineConfig(cache_dir=tmp_path, flush_cache_on_start=True))
    assert list(tmp_path.iterdir()) == []
