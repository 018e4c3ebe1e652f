"""Activity preference ranking: which categories the group wants most."""

from __future__ import annotations

from typing import Sequence

from meety.domain.models import Participant
from meety.features.meeting_point import ready_participants


def ranked_activities(participants: Sequence[Participant]) -> list[str]:
    """Return activity categories ordered by vote count (desc), ties in first-seen order."""
    counts: dict[str, int] = {}
    for p in ready_participants(participants):
        counts[p.activity] = counts.get(p.activity, 0) + 1
    # dicts keep insertion order and sorted() is stable, so ties stay first-seen.
    return sorted(counts, key=lambda category: counts[category], reverse=True)
