from __future__ import annotations

import pytest

from meety.config.overrides import apply_settings_overrides
from meety.config.settings import get_settings


def test_apply_settings_overrides_returns_same_object_when_none():
    settings = get_settings()

    # No overrides is the fast path: same cached object back.
    assert apply_settings_overrides(settings, None) is settings
    assert apply_settings_overrides(settings, {}) is settings


def test_apply_settings_overrides_can_override_allowed_knobs():
    settings = get_settings()
    overrides = {"suggestions": {"tie_window_km": 0.25}, "fallback": {"seed": 5}, "places": {"open_now": True}}

    out = apply_settings_overrides(settings, overrides)

    assert out.suggestions.tie_window_km == 0.25
    assert out.fallback.seed == 5
    assert out.places.open_now is True
    # The shared settings must not change (no cross-request leakage).
    assert settings.suggestions.tie_window_km == 0.5


def test_apply_settings_overrides_rejects_disallowed_keys_with_clear_path():
    settings = get_settings()

    with pytest.raises(ValueError, match=r"places\.base_url"):
        apply_settings_overrides(settings, {"places": {"base_url": "http://evil.example"}})
    with pytest.raises(ValueError, match=r"'cache'"):
        apply_settings_overrides(settings, {"cache": {"dir": "/tmp"}})


def test_apply_settings_overrides_rejects_wrong_value_shapes_for_restricted_subtrees():
    settings = get_settings()

    with pytest.raises(ValueError, match=r"settings_overrides key 'fallback' must be a mapping"):
        apply_settings_overrides(settings, {"fallback": 1})


def test_apply_settings_overrides_revalidates_ranges():
    settings = get_settings()

    with pytest.raises(ValueError):
        apply_settings_overrides(settings, {"fallback": {"rating_min": 4.8, "rating_max": 4.0}})
