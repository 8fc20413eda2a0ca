"""Normalization, tokenization and family-key derivation."""
import pytest

from services.text_normalize import (
    ascii_fold,
    family_key,
    family_key_from_name,
    family_key_from_slug,
    norm_key,
    normalize,
    tokenize,
)

SAMPLES = [
    "Halo 2",
    "The Elder Scrolls IV: Oblivion",
    "xHalo",
    "Tom Clancy's Splinter Cell & Friends",
    "Pokémon   Snap",
    "  the   the  game ",
    "The",
    "-x1 !!",
    "",
    "ⅱ",
    "Project Gotham Racing (USA)",
]


@pytest.mark.parametrize("raw", SAMPLES)
def test_normalize_is_idempotent(raw):
    once = normalize(raw)
    assert normalize(once) == once
    assert norm_key(once) == norm_key(raw)


def test_roman_numerals_match_digits():
    assert tokenize("Halo II") == tokenize("Halo 2") == ("halo", "2")
    assert tokenize("Final Fantasy X") == ("final", "fantasy", "10")


def test_leading_article_and_prefix_are_stripped():
    assert tokenize("The Bard's Tale") == ("bard", "s", "tale")
    assert tokenize("xHalo") == ("halo",)
    assert tokenize("xenosaga") == ("xenosaga",)
    assert tokenize("The") == ("the",)


def test_ascii_fold_symbols_and_accents():
    assert ascii_fold("Rock & Roll") == "rock and roll"
    assert normalize("Rock & Roll") == "rock and roll"
    assert normalize("Pokémon") == "pokemon"
    assert norm_key("Tony Hawk's Pro Skater") == "tonyhawksproskater"


def test_region_parenthetical_is_stripped():
    assert family_key_from_name("Great Game (USA)") == family_key_from_name("Great Game (Europe)")
    assert family_key_from_name("Great Game (USA, Europe)") == "greatgame"
    assert family_key_from_name("Great Game (Director's Cut)") != "greatgame"


def test_slug_region_suffix_is_stripped():
    assert family_key_from_slug("speed-racer-pal") == "speedracer"
    assert family_key_from_slug("speed-racer") == "speedracer"
    assert family_key_from_slug("-pal") == "pal"


def test_family_key_falls_back_to_slug():
    assert family_key("", "great-game-eu") == "greatgame"
    assert family_key("!!!", "great-game") == "greatgame"
