"""
Small formatting helpers.

Used by the CLI to print compact summaries of suggestion runs.
"""

from __future__ import annotations

from meety.domain.models import Suggestion


def one_line_summary(suggestion: Suggestion) -> str:
    """Render a compact single-line summary for a suggestion."""
    parts = [
        f"{suggestion.category}",
        f"rating={suggestion.rating:.1f}",
        f"center={suggestion.distance_to_center:.2f}km",
        f"avg={suggestion.average_distance_to_participants:.2f}km",
    ]
    if suggestion.price_level is not None:
        parts.append("$" * max(1, suggestion.price_level))
    if suggestion.is_open_now is not None:
        parts.append("open now" if suggestion.is_open_now else "closed")
    return " | ".join(parts)
