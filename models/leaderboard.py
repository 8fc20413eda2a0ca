"""
models/leaderboard.py – Normalized leaderboard records and render output.
"""

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class Row:
    """
    One leaderboard line.

    Attributes
    ----------
    rank   : Rank as published (or synthesized 1-based position).
    name   : Player / gamertag.
    metric : Single promoted value (score, time, …); may be empty.
    extras : Remaining "key=value" strings in document order.
    """

    rank: str
    name: str
    metric: str = ""
    extras: Tuple[str, ...] = ()

    def format(self) -> str:
        line = f"{self.rank}. " if self.rank else ""
        line += self.name or "—"
        if self.metric:
            line += "  " + self.metric
        for extra in self.extras:
            line += "  · " + extra
        return line

    def __str__(self) -> str:
        return self.format()


@dataclass(frozen=True)
class Board:
    """A named scoreboard; rows sorted by rank ascending, never empty."""

    name: str
    rows: Tuple[Row, ...]


@dataclass(frozen=True)
class TitleBoards:
    """Every usable board of one title variant."""

    title_id: str
    game_title: str
    boards: Tuple[Board, ...]


@dataclass(frozen=True)
class RenderState:
    """
    Snapshot handed to the display each frame.

    Attributes
    ----------
    header        : Resolved game title, or the raw query as a fallback.
    board_name    : Name of the board currently on screen.
    rows          : Formatted row strings inside the visible content area.
    hold_seconds  : Recommended minimum time the host keeps this screen up.
    title_id      : Variant currently shown.
    board_index   : Index of the current board.
    variant_index : Index of the current variant in the title pool.
    scroll_offset : Scroll position in pixels.
    """

    header: str
    board_name: str
    rows: Tuple[str, ...]
    hold_seconds: float
    title_id: str = ""
    board_index: int = 0
    variant_index: int = 0
    scroll_offset: float = 0.0
