"""
services/title_resolver.py – Fuzzy-match a free-text title against the
catalog listing and collect its regional variants.

Scoring, highest tier first:

  100  exact case-insensitive name
   98  exact ``name_lc`` field
   95  exact slug
   93  normalized name == normalized query
   91  normalized slug == normalized query
  else max(token overlap, bigram Jaccard, containment bonus) minus penalties

Every candidate must then pass a hard gate (a shared token, or one normalized
string containing the other) or its score is forced to 0.
"""

import heapq
import json
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from models.catalog_entry import CatalogEntry, MatchDiagnostic, Resolution
from services import text_normalize as tn
from services.config import DIAGNOSTICS_LIMIT, MIN_ACCEPT_SCORE
from services.exceptions import MalformedResponseError, NoMatchError

logger = logging.getLogger(__name__)

# ── Scoring weights ──────────────────────────────────────────────────────────

SCORE_EXACT_NAME: int = 100
SCORE_EXACT_NAME_LC: int = 98
SCORE_EXACT_SLUG: int = 95
SCORE_NORM_NAME: int = 93
SCORE_NORM_SLUG: int = 91

TOKEN_POINTS: int = 12
TOKEN_CAP: int = 60
FIRST_TOKEN_BONUS: int = 25
BIGRAM_SCALE: int = 70

SHORT_NAME_LEN: int = 6
SHORT_NAME_PENALTY: int = 20
GENERIC_PENALTY: int = 35
GENERIC_WORDS = frozenset({"xbox", "live", "arcade", "marketplace"})

# (minimum contained length, bonus), checked longest first.
CONTAINS_BONUS_STEPS: Tuple[Tuple[int, int], ...] = ((12, 25), (8, 22), (5, 18), (0, 15))


# ── Catalog parsing ──────────────────────────────────────────────────────────


def parse_catalog(body: str) -> List[CatalogEntry]:
    """
    Parse the ``search.json`` listing.

    Entries without a ``title_id`` are skipped.

    Raises
    ------
    MalformedResponseError if the body is not a JSON array.
    """
    try:
        data = json.loads(body)
    except ValueError as exc:
        raise MalformedResponseError(f"Catalog is not valid JSON: {exc}") from exc
    if not isinstance(data, list):
        raise MalformedResponseError("Catalog JSON is not an array.")

    entries: List[CatalogEntry] = []
    for item in data:
        if not isinstance(item, dict):
            continue
        title_id = _text(item.get("title_id"))
        if not title_id:
            continue
        entries.append(
            CatalogEntry(
                id=title_id,
                name=_text(item.get("name")),
                name_lc=_text(item.get("name_lc")),
                slug=_text(item.get("slug")),
            )
        )
    return entries


def _text(value) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


# ── Scoring helpers ──────────────────────────────────────────────────────────


def token_overlap_score(query_tokens: Sequence[str], cand_tokens: Sequence[str]) -> int:
    if not query_tokens or not cand_tokens:
        return 0
    cand = set(cand_tokens)
    matches = sum(1 for tok in query_tokens if tok in cand)
    return min(matches * TOKEN_POINTS, TOKEN_CAP)


def first_token_match(query_tokens: Sequence[str], cand_tokens: Sequence[str]) -> bool:
    return bool(query_tokens) and bool(cand_tokens) and query_tokens[0] == cand_tokens[0]


def bigrams(text: str) -> frozenset:
    return frozenset(text[i - 1 : i + 1] for i in range(1, len(text)))


def bigram_jaccard_score(a: str, b: str) -> int:
    """Jaccard similarity of character bigrams, scaled to 0..70."""
    if not a or not b:
        return 0
    ga, gb = bigrams(a), bigrams(b)
    union = len(ga | gb)
    if not union:
        return 0
    return max(0, min(BIGRAM_SCALE, int(len(ga & gb) / union * BIGRAM_SCALE)))


def contains_bonus(small: str, big: str) -> int:
    """15..25 points when *big* contains *small*, growing with len(small)."""
    if not small or not big or small not in big:
        return 0
    for min_len, bonus in CONTAINS_BONUS_STEPS:
        if len(small) >= min_len:
            return bonus
    return 0


def is_generic_label(tokens: Sequence[str]) -> bool:
    return bool(tokens) and all(tok in GENERIC_WORDS for tok in tokens)


def _contains_either(a: str, b: str) -> bool:
    return bool(a) and bool(b) and (a in b or b in a)


# ── Query / candidate views ──────────────────────────────────────────────────


@dataclass(frozen=True)
class Query:
    """Query text with its derived forms, computed once per raw string."""

    raw: str
    lower: str
    key: str
    tokens: Tuple[str, ...]

    @classmethod
    def from_text(cls, raw: str) -> "Query":
        raw = raw.strip()
        return cls(raw=raw, lower=raw.lower(), key=tn.norm_key(raw), tokens=tn.tokenize(raw))


@dataclass(frozen=True)
class Candidate:
    """A catalog entry with its normalized forms, built once per entry."""

    entry: CatalogEntry
    name_key: str
    slug_key: str
    name_tokens: Tuple[str, ...]
    slug_tokens: Tuple[str, ...]

    @classmethod
    def from_entry(cls, entry: CatalogEntry) -> "Candidate":
        return cls(
            entry=entry,
            name_key=tn.norm_key(entry.name),
            slug_key=tn.norm_key(entry.slug),
            name_tokens=tn.tokenize(entry.name),
            slug_tokens=tn.tokenize(entry.slug),
        )


def score_candidate(query: Query, cand: Candidate) -> Tuple[int, str]:
    """Return (score, reason) for one candidate; score 0 means rejected."""
    entry = cand.entry
    reason = ""
    if entry.name and entry.name.lower() == query.lower:
        score, reason = SCORE_EXACT_NAME, "exact name"
    elif entry.name_lc and entry.name_lc == query.lower:
        score, reason = SCORE_EXACT_NAME_LC, "exact name_lc"
    elif entry.slug and entry.slug.lower() == query.lower:
        score, reason = SCORE_EXACT_SLUG, "exact slug"
    elif cand.name_key and cand.name_key == query.key:
        score, reason = SCORE_NORM_NAME, "norm(name)"
    elif cand.slug_key and cand.slug_key == query.key:
        score, reason = SCORE_NORM_SLUG, "norm(slug)"
    else:
        score, reason = _fuzzy_score(query, cand)

    shared = set(query.tokens) & (set(cand.name_tokens) | set(cand.slug_tokens))
    if not shared and not (
        _contains_either(query.key, cand.name_key)
        or _contains_either(query.key, cand.slug_key)
    ):
        return 0, ""
    return score, reason


def _fuzzy_score(query: Query, cand: Candidate) -> Tuple[int, str]:
    q = query.tokens
    head_name = first_token_match(q, cand.name_tokens)
    head_slug = first_token_match(q, cand.slug_tokens)
    parts = {
        "tokens": max(
            token_overlap_score(q, cand.name_tokens) + (FIRST_TOKEN_BONUS if head_name else 0),
            token_overlap_score(q, cand.slug_tokens) + (FIRST_TOKEN_BONUS if head_slug else 0),
        ),
        "bigram": max(
            bigram_jaccard_score(query.key, cand.name_key),
            bigram_jaccard_score(query.key, cand.slug_key),
        ),
        "contains": max(
            contains_bonus(query.key, cand.name_key),
            contains_bonus(query.key, cand.slug_key),
            contains_bonus(cand.name_key, query.key),
            contains_bonus(cand.slug_key, query.key),
        ),
    }
    reason = max(parts, key=parts.get)
    score = parts[reason]

    if not head_name and not head_slug and len(cand.name_key) <= SHORT_NAME_LEN:
        score -= SHORT_NAME_PENALTY
    if is_generic_label(cand.name_tokens) and (not q or q[0] not in cand.name_tokens):
        score -= GENERIC_PENALTY
    return max(score, 0), reason


# ── Resolver ─────────────────────────────────────────────────────────────────


class TitleResolver:
    """
    Pick the best catalog entry for a query and build its variant pool.

    Parameters
    ----------
    min_score         : Acceptance threshold.
    diagnostics_limit : How many near misses to keep.
    """

    def __init__(
        self,
        min_score: int = MIN_ACCEPT_SCORE,
        diagnostics_limit: int = DIAGNOSTICS_LIMIT,
    ) -> None:
        self.min_score = min_score
        self.diagnostics_limit = diagnostics_limit
        self.last_diagnostics: Tuple[MatchDiagnostic, ...] = ()

    def resolve(self, query_text: str, catalog: Iterable[CatalogEntry]) -> Resolution:
        """
        Resolve *query_text* against *catalog*.

        Raises
        ------
        NoMatchError when no entry reaches the threshold (diagnostics attached).
        """
        query = Query.from_text(query_text)
        entries = list(catalog)
        if not query.key:
            self.last_diagnostics = ()
            raise NoMatchError(query.raw)

        best: Optional[Tuple[tuple, Candidate, int, str]] = None
        scored: List[MatchDiagnostic] = []
        for entry in entries:
            cand = Candidate.from_entry(entry)
            score, reason = score_candidate(query, cand)
            if score > 0:
                scored.append(MatchDiagnostic(entry.id, entry.name, entry.slug, score, reason))
            if score < self.min_score:
                continue
            rank = self._rank(query, cand, score)
            if best is None or rank < best[0]:
                best = (rank, cand, score, reason)

        self.last_diagnostics = tuple(
            heapq.nlargest(self.diagnostics_limit, scored, key=lambda d: d.score)
        )
        if best is None:
            logger.debug(
                "No acceptable match for '%s' (norm='%s'); %d near misses.",
                query.raw, query.key, len(self.last_diagnostics),
            )
            raise NoMatchError(query.raw, self.last_diagnostics)

        _, winner, score, reason = best
        family = tn.family_key(winner.entry.name, winner.entry.slug)
        pool = build_pool(family, entries) or (winner.entry.id,)
        logger.info(
            "Matched '%s' -> '%s' score=%d [%s] family='%s' pool=%d",
            query.raw, winner.entry.name, score, reason, family, len(pool),
        )
        return Resolution(
            best=winner.entry,
            score=score,
            family=family,
            pool=pool,
            diagnostics=self.last_diagnostics,
        )

    @staticmethod
    def _rank(query: Query, cand: Candidate, score: int) -> tuple:
        # Lower sorts first: score, length closeness, head alignment, shorter name.
        return (
            -score,
            abs(len(cand.name_key) - len(query.key)),
            not first_token_match(query.tokens, cand.name_tokens),
            len(cand.entry.name),
        )


def build_pool(family: str, entries: Iterable[CatalogEntry]) -> Tuple[str, ...]:
    """Ordered, de-duplicated ids of every entry whose family key is *family*."""
    if not family:
        return ()
    pool: List[str] = []
    for entry in entries:
        if entry.id and entry.id not in pool and tn.family_key(entry.name, entry.slug) == family:
            pool.append(entry.id)
    return tuple(pool)
