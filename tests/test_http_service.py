"""Transport errors and the cache-then-network read."""
import httpx
import pytest

from services import http_service
from services.exceptions import FetchError, MalformedResponseError
from services.title_resolver import parse_catalog

URL = "http://root/data/search.json"


def _respond(status: int, text: str = ""):
    def fake_get(url, timeout, follow_redirects):
        return httpx.Response(status, text=text, request=httpx.Request("GET", url))

    return fake_get


def test_fetch_text_returns_body(monkeypatch):
    monkeypatch.setattr(http_service.httpx, "get", _respond(200, "[]"))
    assert http_service.fetch_text(URL, 1.0) == "[]"


def test_fetch_text_maps_http_errors(monkeypatch):
    monkeypatch.setattr(http_service.httpx, "get", _respond(404))
    with pytest.raises(FetchError, match="404"):
        http_service.fetch_text(URL, 1.0)


def test_fetch_text_maps_network_errors(monkeypatch):
    def boom(url, timeout, follow_redirects):
        raise httpx.ConnectTimeout("timed out", request=httpx.Request("GET", url))

    monkeypatch.setattr(http_service.httpx, "get", boom)
    with pytest.raises(FetchError):
        http_service.fetch_text(URL, 0.1)


def test_fresh_cache_skips_network(memory_cache, fetcher):
    memory_cache.write(URL, "cached")
    fetcher.add(URL, "network")
    assert http_service.fetch_with_cache(URL, 60, cache=memory_cache, fetch=fetcher) == "cached"
    assert fetcher.calls == []


def test_stale_cache_is_refreshed_from_network(memory_cache, clock, fetcher):
    memory_cache.write(URL, "old")
    clock.advance(120)
    fetcher.add(URL, "new")
    assert http_service.fetch_with_cache(URL, 60, cache=memory_cache, fetch=fetcher) == "new"
    assert memory_cache.read(URL, 60).text == "new"


def test_stale_cache_served_when_unreachable(memory_cache, clock, fetcher):
    memory_cache.write(URL, "old")
    clock.advance(120)
    assert http_service.fetch_with_cache(URL, 60, cache=memory_cache, fetch=fetcher) == "old"


def test_unreachable_without_cache_raises(fetcher):
    with pytest.raises(FetchError):
        http_service.fetch_with_cache(URL, 60, cache=None, fetch=fetcher)


def test_parsed_body_is_returned_and_cached(memory_cache, fetcher):
    fetcher.add(URL, '[{"title_id": "A1", "name": "Halo"}]')
    entries = http_service.fetch_with_cache(
        URL, 60, cache=memory_cache, fetch=fetcher, parse=parse_catalog
    )
    assert [e.id for e in entries] == ["A1"]
    assert memory_cache.read(URL, 60) is not None


def test_malformed_body_falls_back_to_stale_copy(memory_cache, clock, fetcher):
    good = '[{"title_id": "A1", "name": "Halo"}]'
    memory_cache.write(URL, good)
    clock.advance(120)
    fetcher.add(URL, '[{"title_id": "A1", "na')

    entries = http_service.fetch_with_cache(
        URL, 60, cache=memory_cache, fetch=fetcher, parse=parse_catalog
    )
    assert [e.id for e in entries] == ["A1"]
    assert memory_cache.read(URL, 0, allow_stale=True).text == good


def test_malformed_body_without_cache_raises_and_writes_nothing(memory_cache, fetcher):
    fetcher.add(URL, "<html>maintenance</html>")
    with pytest.raises(MalformedResponseError):
        http_service.fetch_with_cache(URL, 60, cache=memory_cache, fetch=fetcher, parse=parse_catalog)
    assert memory_cache.stats() == (0, 0)


def test_unreadable_fresh_entry_is_refetched(memory_cache, fetcher):
    memory_cache.write(URL, "garbage")
    fetcher.add(URL, "[]")
    assert http_service.fetch_with_cache(
        URL, 60, cache=memory_cache, fetch=fetcher, parse=parse_catalog
    ) == []
    assert fetcher.calls == [URL]
    assert memory_cache.read(URL, 60).text == "[]"
