"""
services/cache_service.py – TTL- and size-bounded persistent cache.

Responsibilities
----------------
1. Map resource URLs onto flat, storage-safe keys.
2. Report whether a cached payload is still fresh for a given max age.
3. Keep the store within its age, entry-count and byte ceilings.

A failed write is reported as False and a failed read as a miss; neither is
ever raised to the caller.
"""

import logging
import os
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union

from services.exceptions import CacheError

logger = logging.getLogger(__name__)

# Characters the backing store cannot hold in a key.
UNSAFE_KEY_CHARS: str = "/?:&=%#"
KEY_FILL_CHAR: str = "_"

# ── Types ────────────────────────────────────────────────────────────────────
Clock = Callable[[], float]
EntryInfo = Tuple[str, int, float]  # (key, size in bytes, mtime)


def key_for(url: str) -> str:
    """Derive the cache key for *url* ("http://a/b?c" -> "http__a_b_c")."""
    key = url.replace("://", "__")
    for ch in UNSAFE_KEY_CHARS:
        key = key.replace(ch, KEY_FILL_CHAR)
    return key


@dataclass(frozen=True)
class CacheHit:
    """A payload read from the cache and whether it was within max age."""

    payload: bytes
    is_fresh: bool
    age: float

    @property
    def text(self) -> str:
        return self.payload.decode("utf-8", errors="replace")


# ── Backends ─────────────────────────────────────────────────────────────────


class MemoryCacheBackend:
    """Dict-backed store for hosts without persistent storage."""

    def __init__(self) -> None:
        self._entries: Dict[str, Tuple[bytes, float]] = {}

    def write(self, key: str, data: bytes, mtime: float) -> bool:
        self._entries[key] = (bytes(data), mtime)
        return True

    def read(self, key: str) -> Optional[Tuple[bytes, float]]:
        return self._entries.get(key)

    def list_entries(self) -> List[EntryInfo]:
        return [(k, len(v[0]), v[1]) for k, v in self._entries.items()]

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)


class DirectoryCacheBackend:
    """
    One file per key inside a single flat directory.

    Writes land in a temp file that is atomically moved into place, then the
    file mtime is stamped with the store's clock so ages survive restarts.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        return self.root / key

    def write(self, key: str, data: bytes, mtime: float) -> bool:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.root, prefix=".tmp-")
            try:
                with os.fdopen(fd, "wb") as fh:
                    fh.write(data)
                os.replace(tmp_name, self._path(key))
            except OSError:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
            os.utime(self._path(key), (mtime, mtime))
        except OSError as exc:
            raise CacheError(f"Cannot write cache entry '{key}': {exc}") from exc
        return True

    def read(self, key: str) -> Optional[Tuple[bytes, float]]:
        path = self._path(key)
        try:
            mtime = path.stat().st_mtime
            return path.read_bytes(), mtime
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise CacheError(f"Cannot read cache entry '{key}': {exc}") from exc

    def list_entries(self) -> List[EntryInfo]:
        if not self.root.is_dir():
            return []
        entries: List[EntryInfo] = []
        for path in self.root.iterdir():
            if not path.is_file() or path.name.startswith(".tmp-"):
                continue
            st = path.stat()
            entries.append((path.name, st.st_size, st.st_mtime))
        return entries

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise CacheError(f"Cannot delete cache entry '{key}': {exc}") from exc


# ── Store ────────────────────────────────────────────────────────────────────


class CacheStore:
    """
    URL-keyed cache with freshness checks and two-pass pruning.

    Parameters
    ----------
    backend     : Key/value store with modification times.
    max_entries : Entry-count ceiling enforced by prune().
    max_bytes   : Total-size ceiling enforced by prune().
    max_age     : Entries older than this (seconds) are always pruned.
    clock       : Wall-clock source in seconds; injectable for tests.
    """

    def __init__(
        self,
        backend,
        *,
        max_entries: int,
        max_bytes: int,
        max_age: float,
        clock: Clock = time.time,
    ) -> None:
        self.backend = backend
        self.max_entries = max_entries
        self.max_bytes = max_bytes
        self.max_age = max_age
        self._clock = clock
        self._write_order: Dict[str, int] = {}
        self._writes = 0

    def set_limits(self, max_entries: int, max_bytes: int, max_age: float) -> None:
        self.max_entries = max_entries
        self.max_bytes = max_bytes
        self.max_age = max_age

    def write(self, url: str, payload: Union[str, bytes]) -> bool:
        """Store *payload* under the key for *url*, then prune. False on failure."""
        data = payload.encode("utf-8") if isinstance(payload, str) else bytes(payload)
        key = key_for(url)
        try:
            ok = self.backend.write(key, data, self._clock())
        except CacheError as exc:
            logger.warning("%s", exc)
            return False
        if ok:
            self._writes += 1
            self._write_order[key] = self._writes
            self.prune()
        return ok

    def read(
        self, url: str, max_age: float, allow_stale: bool = False
    ) -> Optional[CacheHit]:
        """
        Look up *url*.

        Returns
        -------
        CacheHit when the entry is fresh (age <= max_age), or when it is stale
        and *allow_stale* is set; None otherwise, including on read errors.
        """
        try:
            found = self.backend.read(key_for(url))
        except CacheError as exc:
            logger.warning("%s", exc)
            return None
        if found is None:
            return None
        payload, mtime = found
        age = self._clock() - mtime
        fresh = mtime > 0 and 0 <= age <= max_age
        if not fresh and not allow_stale:
            return None
        return CacheHit(payload=payload, is_fresh=fresh, age=age)

    def prune(self) -> None:
        """Drop entries past max age, then evict oldest-first until within ceilings."""
        try:
            self._prune()
        except CacheError as exc:
            logger.warning("Cache prune aborted: %s", exc)

    def _prune(self) -> None:
        now = self._clock()
        survivors = []
        for key, size, mtime in self.backend.list_entries():
            if mtime > 0 and now - mtime > self.max_age:
                logger.debug("Cache expired: %s", key)
                self.backend.delete(key)
                self._write_order.pop(key, None)
            else:
                survivors.append((key, size, mtime))

        count = len(survivors)
        total = sum(size for _, size, _ in survivors)
        if count <= self.max_entries and total <= self.max_bytes:
            return

        # Equal mtimes fall back to write order; entries from an earlier run count as oldest.
        survivors.sort(key=lambda e: (e[2], self._write_order.get(e[0], 0)))
        for key, size, _ in survivors:
            if count <= self.max_entries and total <= self.max_bytes:
                break
            logger.debug("Cache evict: %s (%d bytes)", key, size)
            self.backend.delete(key)
            self._write_order.pop(key, None)
            count -= 1
            total -= size

    def flush(self) -> None:
        """Delete every entry."""
        try:
            for key, _, _ in self.backend.list_entries():
                self.backend.delete(key)
                self._write_order.pop(key, None)
        except CacheError as exc:
            logger.warning("Cache flush incomplete: %s", exc)
            return
        logger.info("Cache flushed.")

    def stats(self) -> Tuple[int, int]:
        """Return (entry count, total bytes)."""
        entries = self.backend.list_entries()
        return len(entries), sum(size for _, size, _ in entries)


def build_cache(config, clock: Clock = time.time) -> CacheStore:
    """Create the store described by *config* (directory or in-memory backend)."""
    if config.cache_dir is not None:
        backend = DirectoryCacheBackend(config.cache_dir)
    else:
        backend = MemoryCacheBackend()
    store = CacheStore(
        backend,
        max_entries=config.cache_max_entries,
        max_bytes=config.cache_max_bytes,
        max_age=config.cache_max_age,
        clock=clock,
    )
    if config.flush_cache_on_start:
        store.flush()
    return store
