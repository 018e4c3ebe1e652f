"""
Ranking utilities for suggestions.

- `suggestion_key`: identity used for deduplication (provider ref, else name + rounded position)
- `dedupe_suggestions`: first occurrence wins
- `sort_suggestions`: closest to the meeting point first; within `tie_window_km` the
  better-rated venue wins
"""

from __future__ import annotations

from functools import cmp_to_key
from typing import Iterable

from meety.domain.models import Suggestion


def suggestion_key(suggestion: Suggestion) -> str:
    """Return the deduplication identity of a suggestion."""
    if suggestion.external_ref:
        return suggestion.external_ref
    loc = suggestion.location
    return f"{suggestion.name.strip().lower()}|{loc.lat:.4f}|{loc.lng:.4f}"


def dedupe_suggestions(suggestions: Iterable[Suggestion], *, seen: set[str] | None = None) -> list[Suggestion]:
    """Drop suggestions whose key was already seen (in this list or in `seen`).

    `seen` is updated in place so callers can dedupe across batches.
    """
    seen = seen if seen is not None else set()
    unique: list[Suggestion] = []
    for suggestion in suggestions:
        key = suggestion_key(suggestion)
        if key in seen:
            continue
        seen.add(key)
        unique.append(suggestion)
    return unique


def _sign(x: float) -> int:
    return (x > 0) - (x < 0)


def sort_suggestions(suggestions: Iterable[Suggestion], *, tie_window_km: float = 0.5) -> list[Suggestion]:
    """Sort by distance to center, preferring higher ratings among near-equal distances.

    The comparator is not transitive across long chains of near-ties; Python's sort is
    still stable and always terminates, which is all the ordering needs.
    """

    def compare(a: Suggestion, b: Suggestion) -> int:
        diff = a.distance_to_center - b.distance_to_center
        if abs(diff) < tie_window_km:
            return _sign(b.rating - a.rating)
        return _sign(diff)

    return sorted(suggestions, key=cmp_to_key(compare))
