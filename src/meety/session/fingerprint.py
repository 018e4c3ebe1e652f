"""
Configuration fingerprint.

Suggestions are valid for one group configuration: which participants are ready, where
they are, and what they want to do. The fingerprint is a SHA-256 over a canonical JSON
encoding of that configuration, sorted by participant id, so participant order never
changes it.
"""

from __future__ import annotations

import json
from hashlib import sha256
from typing import Iterable

from meety.domain.models import Participant


def configuration_entries(participants: Iterable[Participant]) -> list[dict]:
    entries = [
        {"participant_id": p.id, "lat": p.location.lat, "lng": p.location.lng, "activity": p.activity}
        for p in participants
        if p.is_ready
    ]
    entries.sort(key=lambda e: e["participant_id"])
    return entries


def configuration_fingerprint(participants: Iterable[Participant]) -> str:
    """Return the order-independent fingerprint of the ready participants."""
    canonical = json.dumps(configuration_entries(participants), sort_keys=True, separators=(",", ":"))
    return sha256(canonical.encode("utf-8")).hexdigest()
