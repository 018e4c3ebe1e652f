"""
Live place-search client (Google Places style "nearby search").

This module is responsible only for:
- mapping an activity category to the provider's place type,
- calling the nearby-search endpoint (radius capped at `places.max_radius_km`),
- caching raw responses briefly on disk,
- parsing results into `RawCandidate`s.

Any provider failure (transport error, non-2xx, error status, malformed payload) is raised
as `SourcingUnavailable`; the sourcing layer answers that with the offline generator.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from meety.config.settings import Settings
from meety.core.cache import FileCache
from meety.core.http import get_json
from meety.core.ingestion_meta import record_category_source
from meety.domain.errors import SourcingUnavailable
from meety.domain.models import Coordinate, RawCandidate

logger = logging.getLogger(__name__)

_OK_STATUSES = {"OK", "ZERO_RESULTS"}


def _parse_place(place: dict[str, Any], *, center: Coordinate) -> RawCandidate | None:
    """Convert one provider result into a `RawCandidate` (None if unusable)."""
    name = str(place.get("name") or "").strip()
    if not name:
        return None

    loc = (place.get("geometry") or {}).get("location") or {}
    try:
        lat = float(loc.get("lat", center.lat))
        lng = float(loc.get("lng", center.lng))
    except (TypeError, ValueError):
        lat, lng = center.lat, center.lng
    address = place.get("vicinity") or place.get("formatted_address") or "Unknown address"

    rating = place.get("rating")
    photos = place.get("photos") or []
    photo_ref = photos[0].get("photo_reference") if photos and isinstance(photos[0], dict) else None
    hours = place.get("opening_hours") or {}

    try:
        return RawCandidate(
            name=name,
            coordinate=Coordinate(lat=lat, lng=lng, address=str(address)),
            rating=float(rating) if rating is not None else None,
            external_ref=place.get("place_id") or None,
            photo_ref=photo_ref,
            price_level=place.get("price_level"),
            is_open_now=hours.get("open_now"),
        )
    except ValueError as e:
        logger.debug("Skipping malformed place %r: %s", name, e)
        return None


class PlacesClient:
    """Fetches, caches and parses nearby-search results."""

    def __init__(self, settings: Settings, cache: FileCache):
        self._settings = settings
        self._cache = cache

    def is_available(self) -> bool:
        places = self._settings.places
        return bool(places.enabled and places.api_key)

    def place_type(self, category: str) -> str:
        places = self._settings.places
        return places.type_mapping.get(category, places.default_place_type)

    def _fetch_nearby(self, center: Coordinate, place_type: str, radius_m: int, open_now: bool) -> dict[str, Any]:
        params: dict[str, Any] = {
            "location": f"{center.lat},{center.lng}",
            "radius": radius_m,
            "type": place_type,
            "key": self._settings.places.api_key,
        }
        if open_now:
            params["opennow"] = "true"
        payload = get_json(
            self._settings.places.base_url,
            params=params,
            timeout_seconds=self._settings.app.http_timeout_seconds,
        )
        if not isinstance(payload, dict):
            raise SourcingUnavailable("Unexpected nearby-search payload (expected an object).")
        status = str(payload.get("status") or "")
        if status not in _OK_STATUSES:
            detail = payload.get("error_message") or status or "missing status"
            raise SourcingUnavailable(f"Nearby search failed: {detail}")
        return payload

    def search(
        self,
        center: Coordinate,
        category: str,
        *,
        radius_km: float,
        max_results: int,
        open_now: bool = False,
    ) -> list[RawCandidate]:
        """Return up to `max_results` live candidates for `category` around `center`."""
        if not self.is_available():
            raise SourcingUnavailable("Place search is disabled or has no API key configured.")

        radius_m = int(min(radius_km, self._settings.places.max_radius_km) * 1000)
        place_type = self.place_type(category)
        cache_key = f"nearby:{center.lat:.4f}:{center.lng:.4f}:{place_type}:{radius_m}:{int(open_now)}"
        ttl_seconds = int(self._settings.places.cache_ttl_seconds)

        fetch: dict[str, Any] = {"attempted": False, "ok": False}

        def build() -> dict[str, Any]:
            fetch["attempted"] = True
            logger.info("Searching places type=%s near %.4f,%.4f (r=%dm)", place_type, center.lat, center.lng, radius_m)
            try:
                payload = self._fetch_nearby(center, place_type, radius_m, open_now)
            except (httpx.HTTPError, ValueError) as e:
                raise SourcingUnavailable(f"Nearby search request failed: {e}") from e
            fetch["ok"] = True
            return payload

        # Expired results are served when the provider fails.
        payload = self._cache.get_or_set("places", cache_key, build, ttl_seconds=ttl_seconds, stale_if_error=True)
        if not fetch["attempted"]:
            mode = "cache"
        elif fetch["ok"]:
            mode = "live"
        else:
            mode = "stale"
            logger.warning("Place search failed; serving expired cached results for type=%s", place_type)
        if not isinstance(payload, dict):
            raise SourcingUnavailable("Unexpected cached nearby-search payload (expected an object).")

        results = payload.get("results") or []
        if not isinstance(results, list):
            raise SourcingUnavailable("Unexpected nearby-search payload (results is not a list).")

        candidates: list[RawCandidate] = []
        for place in results[:max_results]:
            if not isinstance(place, dict):
                continue
            candidate = _parse_place(place, center=center)
            if candidate is not None:
                candidates.append(candidate)

        record_category_source(category, mode=mode, count=len(candidates), place_type=place_type)
        return candidates
