"""
Candidate sourcing adapter.

A `CandidateSource` turns (center, category) into `RawCandidate`s. Two implementations:
- `meety.ingestion.places_client.PlacesClient` (live provider, needs an API key)
- `meety.ingestion.offline_places.OfflinePlaceGenerator` (deterministic, always available)

`CandidateSourcing.begin_run()` picks live vs offline ONCE per suggestion run, based on
availability. If the live source fails mid-run the engine calls `SourcingRun.fall_back()`
and re-sources the whole plan offline, so one run never mixes live and offline venues.
"""

from __future__ import annotations

import logging
from typing import Literal, Protocol

from meety.core.ingestion_meta import record_category_source, record_fallback
from meety.domain.errors import SourcingUnavailable
from meety.domain.models import Coordinate, RawCandidate

logger = logging.getLogger(__name__)

SourceMode = Literal["live", "offline"]


class CandidateSource(Protocol):
    def is_available(self) -> bool:
        """Capability check, evaluated at call time."""

    def search(
        self,
        center: Coordinate,
        category: str,
        *,
        radius_km: float,
        max_results: int,
        open_now: bool = False,
    ) -> list[RawCandidate]:
        """Return up to `max_results` candidates near `center`."""


class SourcingRun:
    """Live/offline decision for a single suggestion run."""

    def __init__(self, live: CandidateSource | None, fallback: CandidateSource, mode: SourceMode):
        self._live = live
        self._fallback = fallback
        self._mode: SourceMode = mode

    @property
    def mode(self) -> SourceMode:
        return self._mode

    def fall_back(self, reason: str) -> None:
        """Switch the rest of this run to the offline generator."""
        if self._mode == "offline":
            return
        logger.warning("Live place search unavailable, switching run to offline data: %s", reason)
        record_fallback(reason)
        self._mode = "offline"

    def search(
        self,
        center: Coordinate,
        category: str,
        *,
        radius_km: float,
        max_results: int,
        open_now: bool = False,
    ) -> list[RawCandidate]:
        """Search the active source.

        Raises:
            SourcingUnavailable: If the live source fails (the caller should `fall_back`).
        """
        if max_results <= 0:
            return []
        if self._mode == "live" and self._live is not None:
            try:
                found = self._live.search(
                    center, category, radius_km=radius_km, max_results=max_results, open_now=open_now
                )
            except SourcingUnavailable:
                raise
            except Exception as e:
                raise SourcingUnavailable(f"{type(e).__name__}: {e}") from e
            # PlacesClient records live/cache itself; stubs may not.
            return found

        found = self._fallback.search(
            center, category, radius_km=radius_km, max_results=max_results, open_now=open_now
        )
        record_category_source(category, mode="offline", count=len(found))
        return found


class CandidateSourcing:
    """Factory for per-run sourcing decisions."""

    def __init__(self, fallback: CandidateSource, live: CandidateSource | None = None):
        self._fallback = fallback
        self._live = live

    @property
    def live(self) -> CandidateSource | None:
        return self._live

    def begin_run(self) -> SourcingRun:
        live_ok = False
        if self._live is not None:
            try:
                live_ok = bool(self._live.is_available())
            except Exception as e:
                logger.warning("Live place search capability check failed: %s", e)
        mode: SourceMode = "live" if live_ok else "offline"
        logger.debug("Sourcing run mode: %s", mode)
        return SourcingRun(self._live if live_ok else None, self._fallback, mode)
