"""
services/scheduler.py – Board / variant rotation and scroll cadence.

All timers are "next eligible time" comparisons against the caller-supplied
``now``, so the schedule is deterministic under a fake clock.

Rows scroll upward from the bottom of the panel; row *i* sits at baseline
``bottom - (scroll - i * line_height)``. A board may rotate once its last row
has risen above the content area and the board dwell has elapsed.
"""

import logging
import random
from typing import Optional, Tuple

from models.leaderboard import Board
from services.config import EngineConfig

logger = logging.getLogger(__name__)


class Scheduler:
    """Render-side state: current board and variant, scroll offset, timers."""

    def __init__(self, config: Optional[EngineConfig] = None, rng: Optional[random.Random] = None) -> None:
        self.config = config or EngineConfig()
        self._rng = rng or random.Random()
        self.board_index = 0
        self.variant_index = 0
        self.scroll = 0.0
        self._last_step = float("-inf")
        self._last_board_switch = 0.0
        self._last_variant_switch = 0.0
        self._freeze_until = 0.0

    # ── Geometry ─────────────────────────────────────────────────────────────

    @property
    def _bottom_baseline(self) -> int:
        return self.config.screen_height - 2

    @property
    def _body_top(self) -> int:
        return self.config.content_top + self.config.line_height

    def row_baseline(self, index: int) -> float:
        return self._bottom_baseline - (self.scroll - index * self.config.line_height)

    def visible_rows(self, board: Board) -> Tuple[str, ...]:
        """Formatted rows whose glyphs fall inside the content area."""
        cfg = self.config
        lines = []
        for i, row in enumerate(board.rows):
            y = self.row_baseline(i)
            if y - cfg.glyph_ascent >= self._body_top and y <= cfg.screen_height + cfg.line_height:
                lines.append(row.format())
        return tuple(lines)

    # ── Lifecycle ────────────────────────────────────────────────────────────

    def reset(self) -> None:
        self.board_index = 0
        self.variant_index = 0
        self.scroll = 0.0
        self._last_step = float("-inf")
        self._last_board_switch = 0.0
        self._last_variant_switch = 0.0
        self._freeze_until = 0.0

    def choose_variant(self, pool_size: int) -> int:
        self.variant_index = self._rng.randrange(pool_size) if pool_size > 0 else 0
        return self.variant_index

    def start(self, board_count: int, now: float) -> None:
        """Called after every successful load: random board, frozen at the top."""
        self.board_index = self._rng.randrange(board_count) if board_count > 0 else 0
        self.scroll = 0.0
        self._last_board_switch = now
        self._freeze_until = now + self.config.freeze
        self._last_variant_switch = now

    def frozen(self, now: float) -> bool:
        return now < self._freeze_until

    def advance(self, boards: Tuple[Board, ...], pool_size: int, now: float) -> bool:
        """
        Move the schedule forward to *now*.

        Returns
        -------
        True when the variant index changed and the new variant must be loaded.
        """
        if not boards or self.frozen(now):
            return False
        cfg = self.config

        if now - self._last_step >= cfg.scroll_interval:
            self._last_step = now
            self.scroll += cfg.scroll_step

        board = boards[self.board_index]
        last_top = self.row_baseline(len(board.rows) - 1) - cfg.glyph_ascent
        if last_top >= self._body_top or now - self._last_board_switch < cfg.board_min_dwell:
            return False

        self._switch_board(len(boards), now)
        if pool_size > 1 and now - self._last_variant_switch >= cfg.variant_dwell:
            self.variant_index = (self.variant_index + 1) % pool_size
            self._last_variant_switch = now
            logger.info("Switching variant -> index %d", self.variant_index)
            return True
        return False

    def _switch_board(self, board_count: int, now: float) -> None:
        nxt = self._rng.randrange(board_count) if board_count > 1 else self.board_index
        if board_count > 1 and nxt == self.board_index:
            nxt = (nxt + 1) % board_count
        self.board_index = nxt
        self.scroll = 0.0
        self._last_board_switch = now
        self._freeze_until = now + self.config.freeze
