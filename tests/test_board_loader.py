"""Scoreboard document normalization."""
import json

import pytest

from services.board_loader import (
    RANK_SENTINEL,
    BoardLoader,
    normalize_row,
    parse_board,
    parse_document,
    rank_key,
    value_text,
)
from services.exceptions import EmptyBoardsError, FetchError, MalformedResponseError


def _doc(*boards, title=None) -> str:
    doc = {"scoreboards": list(boards)}
    if title is not None:
        doc["game_title"] = title
    return json.dumps(doc)


def test_keyed_rows_get_synthesized_ranks_and_metric():
    body = _doc({"rows": [{"name": "Al", "score": "900"}, {"name": "Bo", "score": "500"}]})
    result = parse_document("A1", body)
    assert len(result.boards) == 1
    board = result.boards[0]
    assert board.name == "default"
    assert [(r.rank, r.name, r.metric) for r in board.rows] == [("1", "Al", "900"), ("2", "Bo", "500")]
    assert all(r.extras == () for r in board.rows)


def test_rows_sort_numerically():
    rows = [{"rank": r, "name": f"p{r}"} for r in ["3", "1", "10", "2"]]
    board = parse_board({"rows": rows})
    assert [r.rank for r in board.rows] == ["1", "2", "3", "10"]


def test_non_numeric_ranks_sort_last():
    assert rank_key("3rd") == 3
    assert rank_key("#12") == 12
    assert rank_key("DNF") == RANK_SENTINEL
    board = parse_board({"rows": [{"rank": "DNF", "name": "x"}, {"rank": "2", "name": "y"}]})
    assert [r.name for r in board.rows] == ["y", "x"]


def test_positional_rows_use_declared_columns():
    board = parse_board({
        "name": "Time Trial",
        "columns": ["Pos", "Gamertag", "Best Time", "Car"],
        "rows": [["2", "Bo", "1:02.3", "GT"], ["1", "Al", "0:59.9", "RS"]],
    })
    assert board.name == "Time Trial"
    first = board.rows[0]
    assert (first.rank, first.name, first.metric, first.extras) == ("1", "Al", "0:59.9", ("Car=RS",))


def test_short_positional_row_synthesizes_rank():
    board = parse_board({"columns": ["Rank", "Player", "Score"], "rows": [["", "Al", 10]]})
    assert board.rows[0].rank == "1"
    assert board.rows[0].metric == "10"


def test_declared_column_miss_falls_back_to_row_keys():
    row = normalize_row({"Player": "Al", "RANK": 4, "Points": 12, "Kills": 3},
                        ["Rank", "Name", "Points", "Kills"], 0, 1, 1)
    assert (row.rank, row.name, row.metric) == ("4", "Al", "12")
    assert row.extras == ("Kills=3",)


def test_metric_preference_and_fallback():
    preferred = normalize_row({"name": "a", "kills": 9, "wins": 3, "points": 7}, ["name", "kills", "wins", "points"], -1, 0, 1)
    assert preferred.metric == "7"
    assert preferred.extras == ("kills=9", "wins=3")

    fallback = normalize_row({"name": "a", "kills": 9, "deaths": 2}, ["name", "kills", "deaths"], -1, 0, 1)
    assert fallback.metric == "9"
    assert fallback.extras == ("deaths=2",)


def test_undeclared_keys_and_alias_extras():
    row = normalize_row({"gt": "Al", "score": 5, "user": "dup", "level": "3"}, ["gt", "score"], -1, 0, 1)
    assert row.name == "Al"
    assert row.metric == "5"
    assert row.extras == ("level=3",)


def test_scalar_rows_become_names():
    board = parse_board({"rows": ["Al", "Bo"]})
    assert [(r.rank, r.name) for r in board.rows] == [("1", "Al"), ("2", "Bo")]


def test_row_limits():
    rows = [{"name": str(i), "score": i} for i in range(1500)]
    assert len(parse_board({"rows": rows}).rows) == 1000
    assert len(parse_board({"rows": rows}, max_rows=5).rows) == 5


def test_value_text():
    assert value_text(None) == ""
    assert value_text(True) == "true"
    assert value_text(12) == "12"
    assert value_text(1.5) == "1.5"
    assert value_text([1, 2]) == "[1,2]"


def test_empty_boards_are_dropped():
    result = parse_document("T", _doc({"rows": []}, {"name": "Kept", "rows": [{"name": "a"}]}, "junk"))
    assert [b.name for b in result.boards] == ["Kept"]


def test_document_with_no_usable_rows_fails():
    with pytest.raises(EmptyBoardsError) as err:
        parse_document("T", _doc({"rows": []}, {"name": "x"}))
    assert err.value.title_id == "T"


@pytest.mark.parametrize("body", ["{", "[]", '{"scoreboards": {}}'])
def test_malformed_documents(body):
    with pytest.raises(MalformedResponseError):
        parse_document("T", body)


def test_row_format():
    board = parse_board({"rows": [{"rank": 1, "name": "Al", "score": 9, "laps": 3, "car": "GT"}]})
    assert board.rows[0].format() == "1. Al  9  · laps=3  · car=GT"
    nameless = parse_board({"columns": ["rank", "score"], "rows": [[1, 2]]})
    assert nameless.rows[0].format() == "1. —  2"


def test_loader_uses_cache_then_network(fetcher, memory_cache):
    url = BoardLoader.url_for("http://r", "A1")
    assert url == "http://r/data/by_id/A1.json"
    fetcher.add(url, _doc({"rows": [{"name": "Al"}]}, title="Speed Racer"))
    loader = BoardLoader(fetcher, memory_cache)

    result = loader.load("http://r", "A1")
    assert result.game_title == "Speed Racer"
    loader.load("http://r", "A1")
    assert fetcher.calls == [url]


def test_loader_propagates_fetch_failures(fetcher):
    with pytest.raises(FetchError):
        BoardLoader(fetcher).load("http://r", "missing")


def test_loader_keeps_cached_document_over_malformed_refresh(fetcher, memory_cache, clock):
    url = BoardLoader.url_for("http://r", "A1")
    good = _doc({"rows": [{"name": "Al"}]})
    fetcher.add(url, good)
    loader = BoardLoader(fetcher, memory_cache, ttl=60)
    loader.load("http://r", "A1")

    clock.advance(120)
    fetcher.add(url, '{"scoreboards": [{"rows"')
    result = loader.load("http://r", "A1")
    assert result.boards[0].rows[0].name == "Al"
    assert memory_cache.read(url, 0, allow_stale=True).text == good
