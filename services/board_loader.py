"""
services/board_loader.py – Fetch a title's scoreboard document and normalize
it into Board / Row records.

Document shape
--------------
  {"game_title": "...",
   "scoreboards": [{"name": "...", "columns": ["Rank", "Gamertag", ...],
                    "rows": [{...} | [...] | scalar, ...]}]}

Rows may be keyed objects, positional arrays (against ``columns``) or bare
scalars; all three go through one normalizer.
"""

import json
import logging
from typing import List, Optional, Sequence, Tuple

from models.leaderboard import Board, Row, TitleBoards
from services.config import HARD_ROW_LIMIT, MAX_ROWS_PER_BOARD, TITLE_TTL
from services.exceptions import EmptyBoardsError, MalformedResponseError
from services.http_service import fetch_with_cache

logger = logging.getLogger(__name__)

# ── Column aliases (case-insensitive) ────────────────────────────────────────

RANK_KEYS = ("rank", "#", "pos", "position", "place")
NAME_KEYS = (
    "name", "player", "gamertag", "gamer", "tag",
    "alias", "username", "user", "gt", "account",
)
PREFER_METRIC = ("score", "points", "rating", "time", "best time", "laps", "wins", "value")

DEFAULT_BOARD_NAME: str = "default"

# Sort position for ranks without a numeric prefix.
RANK_SENTINEL: int = 1_000_000_000


def is_rank_key(key: str) -> bool:
    return key.lower() in RANK_KEYS


def is_name_key(key: str) -> bool:
    return key.lower() in NAME_KEYS


def metric_preference(key: str) -> int:
    try:
        return PREFER_METRIC.index(key.lower())
    except ValueError:
        return len(PREFER_METRIC)


def rank_key(rank: str) -> int:
    """Numeric prefix of *rank* ("3rd" -> 3); RANK_SENTINEL if there is none."""
    digits = ""
    for ch in rank:
        if ch.isdigit() and ch.isascii():
            digits += ch
        elif digits:
            break
    return int(digits) if digits else RANK_SENTINEL


def value_text(value) -> str:
    """Render a JSON value the way it appears on screen."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return json.dumps(value)


# ── Row normalization ────────────────────────────────────────────────────────


def _first_alias(columns: Sequence[str], predicate) -> int:
    for i, col in enumerate(columns):
        if predicate(col):
            return i
    return -1


def normalize_row(raw, columns: Sequence[str], rank_idx: int, name_idx: int, position: int) -> Row:
    """
    Turn one raw row (object, array or scalar) into a Row.

    *position* is the 1-based index used when the row carries no rank.
    """
    rank = name = ""
    extras: List[Tuple[str, str]] = []

    if isinstance(raw, dict):
        def by_col(i: int) -> str:
            return value_text(raw.get(columns[i])) if 0 <= i < len(columns) else ""

        rank = by_col(rank_idx)
        name = by_col(name_idx)
        if not rank:
            rank = next((value_text(v) for k, v in raw.items() if is_rank_key(k)), "")
        if not name:
            name = next((value_text(v) for k, v in raw.items() if is_name_key(k)), "")
        extras = [(columns[i], by_col(i)) for i in range(len(columns)) if i not in (rank_idx, name_idx)]
        declared = set(columns)
        extras += [(k, value_text(v)) for k, v in raw.items() if k and k not in declared]
    elif isinstance(raw, list):
        def at(i: int) -> str:
            return value_text(raw[i]) if 0 <= i < len(raw) else ""

        rank = at(rank_idx)
        name = at(name_idx)
        extras = [(columns[i], at(i)) for i in range(len(columns)) if i not in (rank_idx, name_idx)]
    else:
        name = value_text(raw)

    if not rank:
        rank = str(position)

    extras = [
        (k, v) for k, v in extras
        if k and v and not is_rank_key(k) and not is_name_key(k)
    ]
    metric = ""
    if extras:
        pick = min(range(len(extras)), key=lambda i: metric_preference(extras[i][0]))
        metric = extras.pop(pick)[1]

    return Row(
        rank=rank,
        name=name,
        metric=metric,
        extras=tuple(f"{k}={v}" for k, v in extras),
    )


def parse_board(raw_board: dict, max_rows: int = MAX_ROWS_PER_BOARD, hard_limit: int = HARD_ROW_LIMIT) -> Optional[Board]:
    """Normalize one scoreboard; None when it has no usable rows."""
    rows_raw = raw_board.get("rows")
    if not isinstance(rows_raw, list):
        return None

    columns = raw_board.get("columns")
    columns = [value_text(c) for c in columns] if isinstance(columns, list) else []
    if not columns and rows_raw and isinstance(rows_raw[0], dict):
        columns = list(rows_raw[0].keys())

    rank_idx = _first_alias(columns, is_rank_key)
    name_idx = _first_alias(columns, is_name_key)

    limit = hard_limit if max_rows <= 0 else min(max_rows, hard_limit)
    rows: List[Row] = []
    for raw in rows_raw:
        if len(rows) >= limit:
            break
        rows.append(normalize_row(raw, columns, rank_idx, name_idx, len(rows) + 1))

    if not rows:
        return None
    rows.sort(key=lambda r: rank_key(r.rank))
    name = value_text(raw_board.get("name")) or DEFAULT_BOARD_NAME
    return Board(name=name, rows=tuple(rows))


def decode_document(title_id: str, body: str) -> dict:
    """
    Decode a per-title document far enough to trust it.

    Raises
    ------
    MalformedResponseError if the JSON is invalid or lacks a scoreboards array.
    """
    try:
        doc = json.loads(body)
    except ValueError as exc:
        raise MalformedResponseError(f"JSON parse failure for {title_id}: {exc}") from exc
    if not isinstance(doc, dict) or not isinstance(doc.get("scoreboards"), list):
        raise MalformedResponseError(f"No scoreboards array for {title_id}.")
    return doc


def build_title_boards(title_id: str, doc: dict, max_rows: int = MAX_ROWS_PER_BOARD, hard_limit: int = HARD_ROW_LIMIT) -> TitleBoards:
    """Normalize a decoded document. Raises EmptyBoardsError if no board survives."""
    boards = []
    for raw_board in doc["scoreboards"]:
        if not isinstance(raw_board, dict):
            continue
        board = parse_board(raw_board, max_rows, hard_limit)
        if board is not None:
            boards.append(board)

    if not boards:
        raise EmptyBoardsError(title_id)
    return TitleBoards(
        title_id=title_id,
        game_title=value_text(doc.get("game_title")),
        boards=tuple(boards),
    )


def parse_document(title_id: str, body: str, max_rows: int = MAX_ROWS_PER_BOARD, hard_limit: int = HARD_ROW_LIMIT) -> TitleBoards:
    """
    Parse a per-title document.

    Raises
    ------
    MalformedResponseError if the JSON is invalid or lacks a scoreboards array.
    EmptyBoardsError if no board survives normalization.
    """
    return build_title_boards(title_id, decode_document(title_id, body), max_rows, hard_limit)


class BoardLoader:
    """
    Cache-then-network loader for ``<root>/data/by_id/<id>.json``.

    Parameters
    ----------
    fetch      : Callable performing a GET.
    cache      : CacheStore or None.
    ttl        : Freshness window for per-title documents.
    max_rows   : Soft per-board row cap (0 = unlimited).
    hard_limit : Absolute per-board row cap.
    """

    def __init__(self, fetch, cache=None, *, ttl: float = TITLE_TTL,
                 max_rows: int = MAX_ROWS_PER_BOARD, hard_limit: int = HARD_ROW_LIMIT) -> None:
        self._fetch = fetch
        self._cache = cache
        self.ttl = ttl
        self.max_rows = max_rows
        self.hard_limit = hard_limit

    @staticmethod
    def url_for(root: str, title_id: str) -> str:
        return f"{root}/data/by_id/{title_id}.json"

    def load(self, root: str, title_id: str) -> TitleBoards:
        """
        Load and normalize every board of *title_id*.

        Raises
        ------
        FetchError, MalformedResponseError or EmptyBoardsError.
        """
        url = self.url_for(root, title_id)
        doc = fetch_with_cache(
            url, self.ttl, cache=self._cache, fetch=self._fetch,
            parse=lambda body: decode_document(title_id, body),
        )
        result = build_title_boards(title_id, doc, self.max_rows, self.hard_limit)
        logger.info(
            "%s boards=%d (%s)", result.game_title or title_id, len(result.boards), title_id
        )
        return result
