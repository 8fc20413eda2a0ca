"""
services/text_normalize.py – Title normalization, tokenization and family keys.

Both the query and every catalog name/slug go through the same pipeline so
that "The Halo II", "halo 2" and "Halo: 2" compare equal:

  raw -> drop "x" launcher prefix -> lower -> ASCII fold ("&" -> "and",
  other symbols -> space) -> squeeze -> tokens (roman numerals <= 10 become
  digits, leading "the" dropped)
"""

import re
import unicodedata
from typing import Tuple

# ── Vocabulary ───────────────────────────────────────────────────────────────

ROMAN_NUMERALS = {
    "i": "1", "ii": "2", "iii": "3", "iiii": "4", "iv": "4",
    "v": "5", "vi": "6", "vii": "7", "viii": "8", "ix": "9", "x": "10",
}

LEADING_ARTICLES = frozenset({"the"})

REGION_WORDS = frozenset({
    "ntsc", "pal", "usa", "us", "japan", "jpn", "germany", "de",
    "europe", "eu", "asia", "kor", "korea", "au", "australia",
})

SLUG_REGION_SUFFIXES: Tuple[str, ...] = (
    "-ntsc", "-pal", "-usa", "-japan", "-jpn", "-germany",
    "-eu", "-europe", "-asia", "-kor", "-korea",
)

# Launcher-style prefix: "xHalo" -> "Halo". Case-sensitive on purpose.
_PREFIX_PATTERN = re.compile(r"^x(?=[A-Z])")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_TRAILING_PAREN = re.compile(r"\(([^()]*)\)\s*$")


def ascii_fold(text: str) -> str:
    """Lower-case, strip accents, map "&" to "and" and every other symbol to a space."""
    decomposed = unicodedata.normalize("NFKD", text.lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    stripped = stripped.replace("&", " and ")
    return _NON_ALNUM.sub(" ", stripped).strip()


def tokenize(raw: str) -> Tuple[str, ...]:
    if not raw:
        return ()
    text = _PREFIX_PATTERN.sub("", raw.strip())
    tokens = [ROMAN_NUMERALS.get(tok, tok) for tok in ascii_fold(text).split()]
    while len(tokens) > 1 and tokens[0] in LEADING_ARTICLES:
        tokens.pop(0)
    return tuple(tokens)


def normalize(raw: str) -> str:
    """Space-joined token form; idempotent."""
    return " ".join(tokenize(raw))


def norm_key(raw: str) -> str:
    """Separator-free token form used for equality, bigram and substring tests."""
    return "".join(tokenize(raw))


def is_region_word(token: str) -> bool:
    return token.lower().rstrip(",") in REGION_WORDS


def family_key_from_name(name: str) -> str:
    """
    Family key of a display name.

    A trailing parenthetical made only of region words is dropped first, so
    "Great Game (USA)" and "Great Game (Europe, Asia)" share a key.
    """
    text = name.strip()
    match = _TRAILING_PAREN.search(text)
    if match:
        words = [w for w in re.split(r"[\s,]+", match.group(1)) if w]
        if words and all(is_region_word(w) for w in words):
            text = text[: match.start()]
    return norm_key(text.strip())


def family_key_from_slug(slug: str) -> str:
    """Family key of a slug; one known region suffix is removed."""
    text = slug.lower()
    for suffix in SLUG_REGION_SUFFIXES:
        if len(text) > len(suffix) and text.endswith(suffix):
            text = text[: -len(suffix)]
            break
    return norm_key(text.replace("-", " "))


def family_key(name: str, slug: str = "") -> str:
    """Family key from the name, falling back to the slug when the name yields nothing."""
    return family_key_from_name(name) or family_key_from_slug(slug)
