"""
services/engine.py – The leaderboard engine: one object owning all runtime
state, advanced cooperatively by the host loop.

Pipeline (at most one network-touching step per tick, spaced by
``min_step_interval``):

  probe root -> resolve query into a title pool -> load current variant

then the render schedule advances. Any exception from a step is logged and
the step is retried on a later tick; nothing escapes tick().
"""

import enum
import logging
import random
import time
from typing import Callable, Optional, Tuple

from models.catalog_entry import MatchDiagnostic
from models.leaderboard import RenderState, TitleBoards
from services import http_service
from services.board_loader import BoardLoader
from services.cache_service import CacheStore, build_cache
from services.config import EngineConfig
from services.exceptions import EmptyBoardsError, InsigniaError, NoMatchError
from services.root_probe import CATALOG_PATH, RootProbe
from services.scheduler import Scheduler
from services.title_resolver import Query, TitleResolver, parse_catalog

logger = logging.getLogger(__name__)


class Phase(enum.Enum):
    IDLE = "idle"                # no query
    UNRESOLVED = "unresolved"    # waiting for a catalog root
    RESOLVING = "resolving"      # root known, title not matched yet
    RESOLVED = "resolved"        # pool built, current variant not loaded
    ACTIVE = "active"            # boards loaded and scheduled


class LeaderboardEngine:
    """
    Resolve a free-text title and rotate its leaderboards.

    Parameters
    ----------
    config        : Tunables; defaults to EngineConfig().
    fetch         : Callable(url) -> body, raising FetchError. Defaults to httpx.
    cache         : CacheStore; defaults to the store described by *config*.
    clock         : Monotonic time source in seconds.
    rng           : Random source for board / variant picks.
    network_ready : Callable reporting link state; probing waits while False.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        *,
        fetch: Optional[http_service.Fetcher] = None,
        cache: Optional[CacheStore] = None,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
        network_ready: Optional[Callable[[], bool]] = None,
    ) -> None:
        self.config = config or EngineConfig()
        self._fetch = fetch or http_service.make_fetcher(self.config.http_timeout)
        self.cache = cache if cache is not None else build_cache(self.config)
        self._clock = clock
        self._network_ready = network_ready or (lambda: True)

        self.probe = RootProbe(
            self.config.server_base,
            self._fetch,
            self.cache,
            clock=clock,
            spacing=self.config.probe_spacing,
            backoff=self.config.probe_backoff,
            catalog_ttl=self.config.catalog_ttl,
        )
        self.resolver = TitleResolver(self.config.min_accept_score, self.config.diagnostics_limit)
        self.loader = BoardLoader(
            self._fetch,
            self.cache,
            ttl=self.config.title_ttl,
            max_rows=self.config.max_rows_per_board,
            hard_limit=self.config.hard_row_limit,
        )
        self.scheduler = Scheduler(self.config, rng)

        self.query = ""
        self._reset_runtime()

    # ── Public API ───────────────────────────────────────────────────────────

    def on_query(self, text: Optional[str]) -> None:
        """Set the title to resolve; an unchanged (trimmed) value is a no-op."""
        query = (text or "").strip()
        if query == self.query:
            return
        logger.info("Query changed: '%s' -> '%s'", self.query, query)
        self.query = query
        self._reset_runtime()

    def tick(self) -> None:
        """Advance at most one pipeline step, then the render schedule."""
        if not self.query:
            return
        self._maybe_step()
        if not (self.resolved and self.loaded):
            return
        if self.scheduler.advance(self._title.boards, len(self.pool), self._clock()):
            self.loaded = False

    @property
    def is_active(self) -> bool:
        return bool(self.query) and self.resolved and self.loaded

    @property
    def phase(self) -> Phase:
        if not self.query:
            return Phase.IDLE
        if self.probe.root is None:
            return Phase.UNRESOLVED
        if not self.resolved:
            return Phase.RESOLVING
        if not self.loaded:
            return Phase.RESOLVED
        return Phase.ACTIVE

    @property
    def root(self) -> Optional[str]:
        return self.probe.root

    @property
    def diagnostics(self) -> Tuple[MatchDiagnostic, ...]:
        return self._diagnostics

    @property
    def current_title_id(self) -> Optional[str]:
        if not self.pool:
            return None
        return self.pool[self.scheduler.variant_index]

    def recommended_hold(self) -> float:
        return self.config.recommended_hold

    def render_state(self) -> Optional[RenderState]:
        """Snapshot for the display, or None while inactive."""
        if not self.is_active:
            return None
        board = self._title.boards[self.scheduler.board_index]
        return RenderState(
            header=self._title.game_title or self.query,
            board_name=board.name,
            rows=self.scheduler.visible_rows(board),
            hold_seconds=self.recommended_hold(),
            title_id=self._title.title_id,
            board_index=self.scheduler.board_index,
            variant_index=self.scheduler.variant_index,
            scroll_offset=self.scheduler.scroll,
        )

    def dump_search_debug(self) -> None:
        """Log the last resolution's near misses."""
        logger.info(
            "Search debug: app='%s' norm='%s' root='%s'",
            self.query, self.query_norm, self.probe.root or "",
        )
        if not self._diagnostics:
            logger.info("  (no candidates cached)")
        for diag in self._diagnostics:
            logger.info("  • %s", diag)

    def flush_cache(self) -> None:
        self.cache.flush()

    def set_cache_limits(self, max_entries: int = 0, max_bytes: int = 0, max_age: float = 0) -> None:
        """Change cache ceilings; zero keeps the current value."""
        self.config = self.config.with_cache_limits(max_entries, max_bytes, max_age)
        self.cache.set_limits(
            self.config.cache_max_entries,
            self.config.cache_max_bytes,
            self.config.cache_max_age,
        )
        self.cache.prune()

    # ── Pipeline ─────────────────────────────────────────────────────────────

    def _reset_runtime(self) -> None:
        self.query_norm = Query.from_text(self.query).key if self.query else ""
        self.resolved = False
        self.loaded = False
        self.pool: Tuple[str, ...] = ()
        self._title: Optional[TitleBoards] = None
        self._diagnostics: Tuple[MatchDiagnostic, ...] = ()
        self._next_step_at = 0.0
        self._last_error = ""
        self.probe.reset()
        self.scheduler.reset()

    def _maybe_step(self) -> None:
        now = self._clock()
        if now < self._next_step_at:
            return
        self._next_step_at = now + self.config.min_step_interval

        try:
            if self.probe.root is None:
                if self._network_ready():
                    self.probe.step()
            elif not self.resolved:
                self._resolve()
            elif not self.loaded:
                self._load()
        except InsigniaError as exc:
            message = str(exc)
            if message != self._last_error:
                logger.warning("%s", message)
            else:
                logger.debug("%s", message)
            self._last_error = message
        else:
            self._last_error = ""

    def _resolve(self) -> None:
        url = self.probe.root + CATALOG_PATH
        catalog = http_service.fetch_with_cache(
            url, self.config.catalog_ttl, cache=self.cache, fetch=self._fetch,
            parse=parse_catalog,
        )
        try:
            resolution = self.resolver.resolve(self.query, catalog)
        except NoMatchError:
            self._diagnostics = self.resolver.last_diagnostics
            raise
        self._diagnostics = resolution.diagnostics
        self.pool = resolution.pool
        self.scheduler.choose_variant(len(self.pool))
        self.resolved = True

    def _load(self) -> None:
        title_id = self.current_title_id
        try:
            title = self.loader.load(self.probe.root, title_id)
        except EmptyBoardsError:
            if len(self.pool) > 1:
                self.scheduler.variant_index = (self.scheduler.variant_index + 1) % len(self.pool)
                logger.info("Trying sibling variant %s", self.current_title_id)
            raise
        self._title = title
        self.scheduler.start(len(title.boards), self._clock())
        self.loaded = True
