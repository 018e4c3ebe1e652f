# src/meety/features/meeting_point.py
"""
Meeting point + distance metrics (group-level).

Only *ready* participants count (location and activity both set). The group center is
the coordinate-wise median: one participant who is far away moves a mean a lot but
barely moves a median. A single ready participant is their own meeting point.
"""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

from meety.core.geo import LatLng, coordinatewise_median, distance_km
from meety.domain.errors import InsufficientParticipants
from meety.domain.models import Coordinate, Participant

logger = logging.getLogger(__name__)

SINGLE_USER_LABEL = "User Location"
CENTER_LABEL = "Median Center Point"


def ready_participants(participants: Iterable[Participant]) -> list[Participant]:
    """Return ready participants in their original order."""
    return [p for p in participants if p.is_ready]


def compute_meeting_point(participants: Sequence[Participant]) -> Coordinate:
    """Return the group's meeting coordinate.

    Raises:
        InsufficientParticipants: If no participant is ready.
    """
    ready = ready_participants(participants)
    if not ready:
        raise InsufficientParticipants(ready_count=0)

    locations = [p.location for p in ready]
    if len(locations) == 1:
        center = locations[0]
        label = SINGLE_USER_LABEL
    else:
        center = coordinatewise_median(locations)
        label = CENTER_LABEL

    logger.debug("Meeting point for %d ready participant(s): %.6f, %.6f", len(ready), center.lat, center.lng)
    return Coordinate(
        lat=center.lat,
        lng=center.lng,
        address=f"{center.lat:.6f}, {center.lng:.6f} ({label})",
    )


def average_distance(point: LatLng, participants: Sequence[Participant]) -> float:
    """Mean great-circle distance (km) from `point` to every ready participant (0.0 if none)."""
    ready = ready_participants(participants)
    if not ready:
        return 0.0
    return sum(distance_km(point, p.location) for p in ready) / len(ready)


def within_reach(point: LatLng, participants: Sequence[Participant], *, max_distance_km: float = 50.0) -> bool:
    """True if every ready participant is within `max_distance_km` of `point`."""
    return all(distance_km(point, p.location) <= max_distance_km for p in ready_participants(participants))
