# src/meety/config/settings.py
"""
Application settings (Pydantic).

Settings are loaded from `src/meety/config/defaults.yaml`, then optionally overridden by:
- environment variables (e.g., `MEETY_PLACES_API_KEY`, `MEETY_LOG_LEVEL`)
- an external YAML file via `MEETY_CONFIG_PATH`

Design rule:
- Ranking knobs (radius, rating floor, tie window, quotas) live in YAML, not in engine code.
"""

from __future__ import annotations

import os
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, model_validator

from meety.core.env import load_dotenv_if_present


def _read_package_yaml(filename: str) -> dict[str, Any]:
    """Read a YAML file packaged inside `meety.config`."""
    text = resources.files("meety.config").joinpath(filename).read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {filename}; expected a mapping.")
    return data


def _read_yaml_file(path: str | Path) -> dict[str, Any]:
    """Read a YAML file from disk and return its mapping root."""
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {path}; expected a mapping.")
    return data


class AppSettings(BaseModel):
    name: str = "Meety"
    http_timeout_seconds: float = 10
    log_level: str = "INFO"
    public_base_url: str = "http://localhost:8000/"


class CacheSettings(BaseModel):
    enabled: bool = True
    dir: str = ".cache/meety"
    default_ttl_seconds: int = 60 * 5


class PlacesSettings(BaseModel):
    """Live place-search provider (Google Places style nearby search)."""

    enabled: bool = True
    base_url: str = "https://maps.googleapis.com/maps/api/place/nearbysearch/json"
    api_key: str | None = None
    max_radius_km: float = Field(3.0, gt=0)
    open_now: bool = False
    cache_ttl_seconds: int = 60 * 5
    default_place_type: str = "restaurant"
    type_mapping: dict[str, str] = Field(default_factory=dict)


class FallbackSettings(BaseModel):
    """Deterministic offline venue generator."""

    seed: int | None = 42
    rating_min: float = Field(3.5, ge=0, le=5)
    rating_max: float = Field(5.0, ge=0, le=5)
    radius_min_deg: float = Field(0.005, ge=0)
    radius_spread_deg: float = Field(0.020, ge=0)
    angle_jitter_deg: float = Field(60.0, ge=0)

    @model_validator(mode="after")
    def _validate_rating_range(self) -> "FallbackSettings":
        if self.rating_max < self.rating_min:
            raise ValueError("fallback.rating_max must be >= fallback.rating_min")
        return self


class SuggestionSettings(BaseModel):
    max_results_default: int = Field(7, ge=1, le=50)
    search_radius_km: float = Field(3.0, gt=0)
    min_rating: float = Field(3.0, ge=0, le=5)
    unrated_rating: float = Field(4.0, ge=0, le=5)
    tie_window_km: float = Field(0.5, ge=0)
    max_preferred_categories: int = Field(4, ge=1)
    min_category_slots: int = Field(4, ge=1)
    # Category -> quota multiplier, added when the group did not already ask for it.
    mandatory_categories: dict[str, int] = Field(
        default_factory=lambda: {"restaurant": 2, "coffee": 1}
    )
    page_size: int = Field(7, ge=1)
    prefetch: int = Field(7, ge=0)
    load_more_batch: int = Field(7, ge=1)


class SessionSettings(BaseModel):
    colors: list[str] = Field(
        default_factory=lambda: ["#3b82f6", "#8b5cf6", "#f59e0b", "#14b8a6", "#ef4444", "#ec4899"]
    )
    display_name_pattern: str = "User {n}"
    max_distance_km: float = Field(50.0, gt=0)


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    places: PlacesSettings = Field(default_factory=PlacesSettings)
    fallback: FallbackSettings = Field(default_factory=FallbackSettings)
    suggestions: SuggestionSettings = Field(default_factory=SuggestionSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay selected environment variables onto raw settings payload.

    Note: We intentionally keep this whitelist small to avoid exposing unsafe overrides.
    """
    load_dotenv_if_present()
    data = dict(data)
    cache_dir = os.getenv("MEETY_CACHE_DIR")
    if cache_dir:
        data.setdefault("cache", {})["dir"] = cache_dir

    log_level = os.getenv("MEETY_LOG_LEVEL")
    if log_level:
        data.setdefault("app", {})["log_level"] = log_level

    api_key = os.getenv("MEETY_PLACES_API_KEY")
    if api_key:
        data.setdefault("places", {})["api_key"] = api_key

    seed = os.getenv("MEETY_FALLBACK_SEED")
    if seed:
        data.setdefault("fallback", {})["seed"] = None if seed.strip().lower() == "none" else int(seed)

    return data


@lru_cache
def get_settings() -> Settings:
    """Load and validate settings (cached)."""
    load_dotenv_if_present()
    config_path = os.getenv("MEETY_CONFIG_PATH")
    raw = _read_yaml_file(config_path) if config_path else _read_package_yaml("defaults.yaml")
    raw = _apply_env_overrides(raw)
    return Settings.model_validate(raw)


@lru_cache
def get_logging_config() -> dict[str, Any]:
    """Load logging configuration (cached)."""
    return _read_package_yaml("logging.yaml")
