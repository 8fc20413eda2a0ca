"""
models/catalog_entry.py – Immutable data models for catalog matching.
"""

from dataclasses import dataclass, field
from typing import Tuple


@dataclass(frozen=True)
class CatalogEntry:
    """
    Represents one title in the remote catalog listing.

    Attributes
    ----------
    id      : Title id used to address the per-title document.
    name    : Human-readable title (may carry a region suffix, e.g. "(PAL)").
    name_lc : Optional pre-lowered name supplied by the catalog.
    slug    : Optional URL slug (e.g. "speed-racer-pal").
    """

    id: str
    name: str
    name_lc: str = ""
    slug: str = ""

    def __str__(self) -> str:
        parts = [self.name or self.slug or self.id]
        if self.slug:
            parts.append(f"[{self.slug}]")
        parts.append(f"({self.id})")
        return "  ".join(parts)


@dataclass(frozen=True)
class MatchDiagnostic:
    """One scored candidate kept for operator troubleshooting."""

    id: str
    name: str
    slug: str
    score: int
    reason: str = ""

    def __str__(self) -> str:
        return f"{self.score:<3d}  {self.name}  (slug={self.slug}, id={self.id})  [{self.reason}]"


@dataclass(frozen=True)
class Resolution:
    """
    Outcome of a successful title resolution.

    Attributes
    ----------
    best        : Winning catalog entry.
    score       : Winning score.
    family      : Family key shared by every id in *pool*.
    pool        : Ordered, de-duplicated title ids of the family; never empty.
    diagnostics : Bounded near-miss list, best first.
    """

    best: CatalogEntry
    score: int
    family: str
    pool: Tuple[str, ...]
    diagnostics: Tuple[MatchDiagnostic, ...] = field(default_factory=tuple)
