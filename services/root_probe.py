"""
services/root_probe.py – Incremental discovery of a working catalog root.

One candidate is tried per eligible step() call. A candidate is good when
``<candidate>/data/search.json`` parses as JSON, from cache (stale allowed)
or from the network.
"""

import json
import logging
import time
from typing import Callable, List, Optional

from services.config import CATALOG_TTL, PROBE_BACKOFF, PROBE_SPACING
from services.http_service import fetch_optional

logger = logging.getLogger(__name__)

CATALOG_PATH: str = "/data/search.json"


def candidate_roots(base_csv: str) -> List[str]:
    """
    Expand a comma-separated base list into candidate roots.

    For each base: the base itself, the base without a trailing ``/data``,
    ``base/xbox`` and ``base/xbox/data``. Trailing slashes are stripped and
    duplicates dropped, first occurrence wins.
    """
    roots: List[str] = []

    def add(url: str) -> None:
        url = url.rstrip("/")
        if url and url not in roots:
            roots.append(url)

    for part in base_csv.split(","):
        base = part.strip().rstrip("/")
        if not base:
            continue
        add(base)
        if base.endswith("/data"):
            add(base[: -len("/data")])
        add(base + "/xbox")
        add(base + "/xbox/data")
    return roots


def _is_json(body: Optional[str]) -> bool:
    if body is None:
        return False
    try:
        json.loads(body)
    except ValueError:
        return False
    return True


class RootProbe:
    """
    Non-blocking root discovery.

    Parameters
    ----------
    base     : Comma-separated base URL list.
    fetch    : Callable performing a GET.
    cache    : CacheStore or None.
    clock    : Monotonic time source in seconds.
    spacing  : Minimum delay between two candidate attempts.
    backoff  : Delay after a full pass over the candidates fails.
    """

    def __init__(
        self,
        base: str,
        fetch,
        cache=None,
        *,
        clock: Callable[[], float] = time.monotonic,
        spacing: float = PROBE_SPACING,
        backoff: float = PROBE_BACKOFF,
        catalog_ttl: float = CATALOG_TTL,
    ) -> None:
        self.base = base
        self._fetch = fetch
        self._cache = cache
        self._clock = clock
        self.spacing = spacing
        self.backoff = backoff
        self.catalog_ttl = catalog_ttl
        self.root: Optional[str] = None
        self._candidates: List[str] = []
        self._index = 0
        self._next_at = 0.0

    @property
    def candidates(self) -> List[str]:
        return list(self._candidates)

    def reset(self) -> None:
        """Forget the in-progress candidate list; a discovered root is kept."""
        self._candidates = []
        self._index = 0
        self._next_at = 0.0

    def step(self) -> bool:
        """Try at most one candidate. True once a root is known."""
        if self.root:
            return True
        if not self._candidates:
            self._candidates = candidate_roots(self.base)
            self._index = 0
            logger.debug("Probing %d candidate roots.", len(self._candidates))

        now = self._clock()
        if now < self._next_at:
            return False
        self._next_at = now + self.spacing

        if self._index >= len(self._candidates):
            logger.debug("All candidate roots failed; backing off %.1fs.", self.backoff)
            self._next_at = now + self.backoff
            self._index = 0
            return False

        candidate = self._candidates[self._index]
        self._index += 1
        if self._try(candidate):
            self.root = candidate
            return True
        return False

    def _try(self, candidate: str) -> bool:
        url = candidate + CATALOG_PATH
        if self._cache is not None:
            hit = self._cache.read(url, self.catalog_ttl, allow_stale=True)
            if hit is not None and _is_json(hit.text):
                logger.info("Catalog root via cache: %s", candidate)
                return True

        body = fetch_optional(url, fetch=self._fetch)
        if body is None:
            return False
        if _is_json(body):
            if self._cache is not None:
                self._cache.write(url, body)
            logger.info("Catalog root via network: %s", candidate)
            return True
        logger.debug("Candidate %s returned non-JSON catalog.", candidate)
        return False
