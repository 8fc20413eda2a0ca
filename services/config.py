"""
services/config.py – Named tunables for the leaderboard engine.

Every constant the matching, caching and scheduling code depends on lives
here. The scoring weights and the acceptance threshold are empirically tuned
and should be recalibrated against real catalog data.
"""

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

# ── Configuration: endpoints ─────────────────────────────────────────────────

# Comma-separated list of base URLs; each expands into several candidate roots.
SERVER_BASE: str = "http://darkone83.myddns.me:8080/xbox"

# HTTP timeout (seconds) for both catalog probing and per-title fetches.
HTTP_TIMEOUT: float = 1.2

# ── Configuration: cache ─────────────────────────────────────────────────────

CATALOG_TTL: float = 6 * 60 * 60
TITLE_TTL: float = 2 * 60
CACHE_MAX_ENTRIES: int = 32
CACHE_MAX_BYTES: int = 128 * 1024
CACHE_MAX_AGE: float = 6 * 60 * 60

# ── Configuration: pipeline pacing ───────────────────────────────────────────

PROBE_SPACING: float = 0.2
PROBE_BACKOFF: float = 2.0
MIN_STEP_INTERVAL: float = 0.1

# ── Configuration: matching ──────────────────────────────────────────────────

MIN_ACCEPT_SCORE: int = 65
DIAGNOSTICS_LIMIT: int = 10

# ── Configuration: boards ────────────────────────────────────────────────────

MAX_ROWS_PER_BOARD: int = 0  # 0 = unlimited
HARD_ROW_LIMIT: int = 1000

# ── Configuration: render schedule ───────────────────────────────────────────

SCROLL_INTERVAL: float = 0.04
SCROLL_STEP: float = 1.0
BOARD_MIN_DWELL: float = 3.0
FREEZE: float = 0.75
VARIANT_DWELL: float = 12.0
RECOMMENDED_HOLD: float = 15.0

# Display geometry (pixels) of the 128x64 panel the schedule was tuned for.
SCREEN_HEIGHT: int = 64
LINE_HEIGHT: int = 9
GLYPH_ASCENT: int = 7
CONTENT_TOP: int = 16

_TRUE_WORDS = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class EngineConfig:
    """Immutable bundle of engine tunables; durations are in seconds."""

    server_base: str = SERVER_BASE
    http_timeout: float = HTTP_TIMEOUT

    catalog_ttl: float = CATALOG_TTL
    title_ttl: float = TITLE_TTL
    cache_max_entries: int = CACHE_MAX_ENTRIES
    cache_max_bytes: int = CACHE_MAX_BYTES
    cache_max_age: float = CACHE_MAX_AGE
    cache_dir: Optional[Path] = None
    flush_cache_on_start: bool = False

    probe_spacing: float = PROBE_SPACING
    probe_backoff: float = PROBE_BACKOFF
    min_step_interval: float = MIN_STEP_INTERVAL

    min_accept_score: int = MIN_ACCEPT_SCORE
    diagnostics_limit: int = DIAGNOSTICS_LIMIT

    max_rows_per_board: int = MAX_ROWS_PER_BOARD
    hard_row_limit: int = HARD_ROW_LIMIT

    scroll_interval: float = SCROLL_INTERVAL
    scroll_step: float = SCROLL_STEP
    board_min_dwell: float = BOARD_MIN_DWELL
    freeze: float = FREEZE
    variant_dwell: float = VARIANT_DWELL
    recommended_hold: float = RECOMMENDED_HOLD

    screen_height: int = SCREEN_HEIGHT
    line_height: int = LINE_HEIGHT
    glyph_ascent: int = GLYPH_ASCENT
    content_top: int = CONTENT_TOP

    debug: bool = False

    @classmethod
    def from_env(cls, environ=None) -> "EngineConfig":
        """
        Build a config from ``INSIGNIA_*`` environment variables.

        Recognised: INSIGNIA_SERVER_BASE, INSIGNIA_CACHE_DIR,
        INSIGNIA_FLUSH_CACHE, INSIGNIA_DEBUG. Anything unset keeps its default.
        """
        env = os.environ if environ is None else environ
        overrides = {}
        base = env.get("INSIGNIA_SERVER_BASE", "").strip()
        if base:
            overrides["server_base"] = base
        cache_dir = env.get("INSIGNIA_CACHE_DIR", "").strip()
        if cache_dir:
            overrides["cache_dir"] = Path(cache_dir).expanduser()
        if "INSIGNIA_FLUSH_CACHE" in env:
            overrides["flush_cache_on_start"] = (
                env["INSIGNIA_FLUSH_CACHE"].strip().lower() in _TRUE_WORDS
            )
        if "INSIGNIA_DEBUG" in env:
            overrides["debug"] = env["INSIGNIA_DEBUG"].strip().lower() in _TRUE_WORDS
        return cls(**overrides)

    def with_cache_limits(
        self,
        max_entries: Optional[int] = None,
        max_bytes: Optional[int] = None,
        max_age: Optional[float] = None,
    ) -> "EngineConfig":
        """Return a copy with new cache ceilings; falsy arguments keep the current value."""
        return replace(
            self,
            cache_max_entries=max_entries or self.cache_max_entries,
            cache_max_bytes=max_bytes or self.cache_max_bytes,
            cache_max_age=max_age or self.cache_max_age,
        )
