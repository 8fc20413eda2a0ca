from __future__ import annotations

import json
import random
from typing import Dict

import pytest

from services.cache_service import CacheStore, DirectoryCacheBackend, MemoryCacheBackend
from services.exceptions import FetchError


class FakeClock:
    """Manually advanced clock (seconds)."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeFetcher:
    """URL -> body map; unknown URLs behave like an unreachable host."""

    def __init__(self, routes: Dict[str, object] | None = None) -> None:
        self.routes: Dict[str, str] = {}
        self.calls: list[str] = []
        for url, body in (routes or {}).items():
            self.add(url, body)

    def add(self, url: str, body) -> None:
        self.routes[url] = body if isinstance(body, str) else json.dumps(body)

    def __call__(self, url: str) -> str:
        self.calls.append(url)
        if url not in self.routes:
            raise FetchError(f"unreachable: {url}")
        return self.routes[url]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def memory_cache(clock) -> CacheStore:
    return CacheStore(
        MemoryCacheBackend(), max_entries=32, max_bytes=128 * 1024, max_age=6 * 3600, clock=clock
    )


@pytest.fixture
def disk_cache(tmp_path, clock) -> CacheStore:
    return CacheStore(
        DirectoryCacheBackend(tmp_path / "insig"),
        max_entries=32,
        max_bytes=128 * 1024,
        max_age=6 * 3600,
        clock=clock,
    )
