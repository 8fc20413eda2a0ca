"""
services/http_service.py – Blocking HTTP GET with a fixed timeout, plus the
cache-then-network read used by every engine fetch.

Each call makes exactly one request. Retries are left to the engine's step
spacing and backoff, never looped here, so a dead endpoint costs at most one
timeout per tick.
"""

import logging
from typing import Any, Callable, Optional

import httpx

from services.exceptions import FetchError, MalformedResponseError

logger = logging.getLogger(__name__)

# ── Types ────────────────────────────────────────────────────────────────────
Fetcher = Callable[[str], str]


def fetch_text(url: str, timeout: float) -> str:
    """
    GET *url* and return the decoded body.

    Raises
    ------
    FetchError
        On any network error, timeout or non-2xx status.
    """
    try:
        response = httpx.get(url, timeout=timeout, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise FetchError(
            f"Server returned HTTP {exc.response.status_code} for URL: {url}"
        ) from exc
    except httpx.RequestError as exc:
        raise FetchError(f"Network error fetching {url}: {exc}") from exc
    return response.text


def make_fetcher(timeout: float) -> Fetcher:
    """Bind *timeout* so callers only pass the URL."""

    def _fetch(url: str) -> str:
        return fetch_text(url, timeout)

    return _fetch


def fetch_with_cache(
    url: str,
    ttl: float,
    *,
    cache,
    fetch: Fetcher,
    parse: Optional[Callable[[str], Any]] = None,
) -> Any:
    """
    Return the body for *url*, preferring a fresh cached copy.

    Order: fresh cache hit, then the network (written through to the cache),
    then a stale cached copy if the network step failed. When *parse* is
    given, the decoded value is returned instead of the text, and a body it
    rejects with MalformedResponseError counts as a network failure: it is
    never written to the cache.

    Parameters
    ----------
    url   : Full resource URL; also the cache key source.
    ttl   : Maximum age (seconds) at which the cached copy counts as fresh.
    cache : CacheStore, or None for network-only operation.
    fetch : Callable performing the GET.
    parse : Optional decoder applied to every body before it is trusted.

    Raises
    ------
    FetchError or MalformedResponseError when the network step fails and no
    usable cached copy exists.
    """
    decode = parse or _as_text
    if cache is not None:
        hit = cache.read(url, ttl)
        if hit is not None:
            try:
                return decode(hit.text)
            except MalformedResponseError as exc:
                logger.warning("Ignoring unreadable cache entry for %s: %s", url, exc)

    try:
        body = fetch(url)
        result = decode(body)
    except (FetchError, MalformedResponseError) as exc:
        stale = _read_stale(url, cache, decode)
        if stale is None:
            raise
        logger.warning("Serving stale cache for %s: %s", url, exc)
        return stale

    if cache is not None and not cache.write(url, body):
        logger.debug("Cache write failed for %s; continuing network-only.", url)
    return result


def _as_text(body: str) -> str:
    return body


def _read_stale(url: str, cache, decode: Callable[[str], Any]) -> Any:
    if cache is None:
        return None
    hit = cache.read(url, 0, allow_stale=True)
    if hit is None:
        return None
    try:
        return decode(hit.text)
    except MalformedResponseError:
        return None


def fetch_optional(url: str, *, fetch: Fetcher) -> Optional[str]:
    """Network-only GET that maps FetchError to None."""
    try:
        return fetch(url)
    except FetchError as exc:
        logger.debug("Fetch failed for %s: %s", url, exc)
        return None
