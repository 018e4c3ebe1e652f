from __future__ import annotations

# This module is the orchestrator for the suggestion pipeline.
# It wires together:
# - aggregation (meeting point, activity ranking, per-venue distances)
# - candidate sourcing (live provider or offline generator, chosen once per run)
# - ranking (dedupe, distance/rating sort, truncation)
#
# Design goal:
# - Ranking never suspends and never talks to the network; only sourcing does.
# - Fail open: a broken provider means offline venues, never an error.

import logging
import math
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Sequence

from meety.config.overrides import apply_settings_overrides
from meety.config.settings import Settings, SuggestionSettings, get_settings
from meety.core.cache import FileCache, record_cache_stats
from meety.core.env import resolve_project_path
from meety.core.geo import distance_km
from meety.core.ingestion_meta import capture_sourcing_trace
from meety.domain.errors import InsufficientParticipants, SourcingUnavailable
from meety.domain.models import Coordinate, Participant, RawCandidate, Suggestion, SuggestionRun
from meety.features.activity_rank import ranked_activities
from meety.features.meeting_point import average_distance, compute_meeting_point, ready_participants, within_reach
from meety.ingestion.offline_places import OfflinePlaceGenerator, slugify
from meety.ingestion.places_client import PlacesClient
from meety.ingestion.sourcing import CandidateSourcing, SourcingRun
from meety.scoring.ranking import dedupe_suggestions, sort_suggestions

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CategoryQuota:
    """One sourcing request in a run's plan."""

    category: str
    max_results: int
    preferred: bool


def build_cache(settings: Settings) -> FileCache:
    return FileCache(
        resolve_project_path(settings.cache.dir),
        enabled=settings.cache.enabled,
        default_ttl_seconds=settings.cache.default_ttl_seconds,
    )


def build_sourcing(settings: Settings, *, cache: FileCache | None = None) -> CandidateSourcing:
    """Offline generator plus the live client (which reports itself unavailable without a key)."""
    live = PlacesClient(settings, cache or build_cache(settings)) if settings.places.enabled else None
    return CandidateSourcing(fallback=OfflinePlaceGenerator(settings.fallback), live=live)


def category_quota(max_results: int, category_count: int, settings: SuggestionSettings) -> int:
    """Per-category result quota; the mandatory categories always reserve slots."""
    slots = max(category_count + len(settings.mandatory_categories), settings.min_category_slots)
    return math.ceil(max_results / slots)


def build_category_plan(ranked: Sequence[str], max_results: int, settings: SuggestionSettings) -> list[CategoryQuota]:
    """Top preferred categories first, then mandatory ones the group did not ask for."""
    quota = category_quota(max_results, len(ranked), settings)
    plan = [CategoryQuota(c, quota, True) for c in ranked[: settings.max_preferred_categories]]
    for category, multiplier in settings.mandatory_categories.items():
        if category not in ranked:
            plan.append(CategoryQuota(category, quota * int(multiplier), False))
    return plan


def _suggestion_id(candidate: RawCandidate) -> str:
    if candidate.external_ref:
        return candidate.external_ref
    c = candidate.coordinate
    return f"{slugify(candidate.name)}-{c.lat:.4f}-{c.lng:.4f}"


class SuggestionEngine:
    """Turns a participant snapshot into a ranked list of meeting places."""

    def __init__(self, settings: Settings | None = None, *, sourcing: CandidateSourcing | None = None):
        self._settings = settings or get_settings()
        self._sourcing = sourcing or build_sourcing(self._settings)

    @property
    def settings(self) -> Settings:
        return self._settings

    def with_overrides(self, overrides: Mapping[str, Any] | None) -> "SuggestionEngine":
        """Return an engine tuned by per-request overrides (self if there are none)."""
        if not overrides:
            return self
        settings = apply_settings_overrides(self._settings, overrides)
        sourcing = CandidateSourcing(fallback=OfflinePlaceGenerator(settings.fallback), live=self._sourcing.live)
        return SuggestionEngine(settings, sourcing=sourcing)

    def _collect(
        self, run: SourcingRun, center: Coordinate, plan: list[CategoryQuota]
    ) -> list[tuple[str, RawCandidate]]:
        s = self._settings.suggestions
        collected: list[tuple[str, RawCandidate]] = []
        for item in plan:
            found = run.search(
                center,
                item.category,
                radius_km=s.search_radius_km,
                max_results=item.max_results,
                open_now=self._settings.places.open_now,
            )
            for candidate in found:
                # Unrated venues pass; only a known low rating disqualifies.
                if candidate.rating is not None and candidate.rating < s.min_rating:
                    continue
                collected.append((item.category, candidate))
        return collected

    def _to_suggestion(
        self, category: str, candidate: RawCandidate, center: Coordinate, participants: Sequence[Participant]
    ) -> Suggestion:
        rating = candidate.rating if candidate.rating is not None else self._settings.suggestions.unrated_rating
        return Suggestion(
            id=_suggestion_id(candidate),
            name=candidate.name,
            category=category,
            location=candidate.coordinate,
            rating=rating,
            distance_to_center=distance_km(center, candidate.coordinate),
            average_distance_to_participants=average_distance(candidate.coordinate, participants),
            external_ref=candidate.external_ref,
            photo_ref=candidate.photo_ref,
            price_level=candidate.price_level,
            is_open_now=candidate.is_open_now,
        )

    def run(self, participants: Sequence[Participant], max_results: int | None = None) -> SuggestionRun:
        """Run the full pipeline and return suggestions plus run metadata.

        Raises:
            InsufficientParticipants: If no participant is ready.
        """
        t0 = time.monotonic()
        s = self._settings.suggestions
        requested = int(s.max_results_default if max_results is None else max_results)
        if requested < 1:
            raise ValueError("max_results must be >= 1")

        ready = ready_participants(participants)
        if not ready:
            raise InsufficientParticipants(ready_count=0)

        meeting_point = compute_meeting_point(ready)
        reachable = within_reach(meeting_point, ready, max_distance_km=self._settings.session.max_distance_km)
        if not reachable:
            logger.warning("Meeting point %s is far from at least one participant", meeting_point.address)
        ranked = ranked_activities(ready)
        plan = build_category_plan(ranked, requested, s)
        logger.info(
            "Generating up to %d suggestions around %s for %d ready participant(s); plan=%s",
            requested,
            meeting_point.address,
            len(ready),
            [(p.category, p.max_results) for p in plan],
        )

        sourcing_run = self._sourcing.begin_run()
        with capture_sourcing_trace() as trace, record_cache_stats() as cache_stats:
            try:
                collected = self._collect(sourcing_run, meeting_point, plan)
            except SourcingUnavailable as e:
                sourcing_run.fall_back(str(e))
                collected = self._collect(sourcing_run, meeting_point, plan)
        t_sourced = time.monotonic()

        converted = [self._to_suggestion(cat, cand, meeting_point, ready) for cat, cand in collected]
        unique = dedupe_suggestions(converted)
        ordered = sort_suggestions(unique, tie_window_km=s.tie_window_km)
        results = ordered[:requested]

        logger.info(
            "Generated %d suggestion(s) from %d candidate(s) (%d unique, mode=%s)",
            len(results),
            len(converted),
            len(unique),
            sourcing_run.mode,
        )
        return SuggestionRun(
            generated_at=datetime.now(timezone.utc),
            meeting_point=meeting_point,
            categories=[p.category for p in plan],
            source_mode=sourcing_run.mode,
            suggestions=results,
            requested=requested,
            exhausted=len(ordered) < requested,
            meta={
                "plan": [{"category": p.category, "max_results": p.max_results, "preferred": p.preferred} for p in plan],
                "candidates": {"raw": len(converted), "unique": len(unique)},
                "within_reach": reachable,
                "sources": trace.as_dict(),
                "cache": cache_stats.as_dict(),
                "timings_ms": {
                    "sourcing": int((t_sourced - t0) * 1000),
                    "total": int((time.monotonic() - t0) * 1000),
                },
            },
        )

    def generate(self, participants: Sequence[Participant], max_results: int | None = None) -> list[Suggestion]:
        """Return the ranked suggestion list only (see `run` for metadata)."""
        return self.run(participants, max_results).suggestions
