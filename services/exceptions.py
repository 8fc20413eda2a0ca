"""
services/exceptions.py – Structured custom exception hierarchy for the
leaderboard engine.

All service-level errors derive from InsigniaError so the engine can catch
broadly at the tick boundary, or specifically where a failure changes what
happens next.
"""

from typing import Tuple


class InsigniaError(Exception):
    """Base class for all leaderboard engine exceptions."""


class FetchError(InsigniaError):
    """Raised when a resource cannot be retrieved (no network, timeout, non-200)."""


class MalformedResponseError(InsigniaError):
    """Raised when a payload is not valid JSON or has the wrong shape."""


class CacheError(InsigniaError):
    """Raised by cache backends on storage failures."""


class NoMatchError(InsigniaError):
    """
    Raised when no catalog entry clears the acceptance threshold.

    Attributes
    ----------
    query       : Raw query that was resolved.
    diagnostics : Near-miss candidates, best first.
    """

    def __init__(self, query: str, diagnostics: Tuple = ()) -> None:
        self.query = query
        self.diagnostics = tuple(diagnostics)
        super().__init__(
            f"No acceptable catalog match for '{query}' "
            f"({len(self.diagnostics)} near misses)."
        )


class EmptyBoardsError(InsigniaError):
    """
    Raised when a title document parses but yields no usable boards.

    Attributes
    ----------
    title_id : Title whose document was empty.
    """

    def __init__(self, title_id: str) -> None:
        self.title_id = title_id
        super().__init__(f"Title '{title_id}' parsed but has 0 usable boards.")
