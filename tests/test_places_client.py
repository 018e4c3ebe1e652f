import httpx
import pytest

from meety.config.settings import get_settings
from meety.core.cache import FileCache, record_cache_stats
from meety.core.ingestion_meta import capture_sourcing_trace
from meety.domain.errors import SourcingUnavailable
from meety.domain.models import Coordinate
from meety.ingestion.places_client import PlacesClient

CENTER = Coordinate(lat=40.01, lng=-73.01)


def _settings(api_key="test-key", **places):
    settings = get_settings()
    return settings.model_copy(
        update={"places": settings.places.model_copy(update={"api_key": api_key, "enabled": True, **places})}
    )


def _payload():
    return {
        "status": "OK",
        "results": [
            {
                "place_id": "abc",
                "name": "Bean There",
                "geometry": {"location": {"lat": 40.011, "lng": -73.009}},
                "vicinity": "1 Main St",
                "rating": 4.6,
                "price_level": 2,
                "photos": [{"photo_reference": "photo-1"}],
                "opening_hours": {"open_now": True},
            },
            {"place_id": "def", "name": "No Geometry Cafe"},
            {"place_id": "skip", "name": "   "},
            {"place_id": "ghi", "name": "Third", "geometry": {"location": {"lat": 40.0, "lng": -73.0}}},
        ],
    }


def test_search_parses_and_truncates(monkeypatch, tmp_path):
    calls = []

    def fake_get_json(url, **kwargs):
        calls.append(kwargs["params"])
        return _payload()

    monkeypatch.setattr("meety.ingestion.places_client.get_json", fake_get_json)
    client = PlacesClient(_settings(), FileCache(tmp_path, enabled=False))

    found = client.search(CENTER, "coffee", radius_km=10.0, max_results=2)

    assert [c.name for c in found] == ["Bean There", "No Geometry Cafe"]
    first, second = found
    assert first.external_ref == "abc"
    assert first.photo_ref == "photo-1"
    assert first.coordinate.address == "1 Main St"
    assert first.is_open_now is True
    assert first.price_level == 2
    assert (second.coordinate.lat, second.coordinate.lng) == (CENTER.lat, CENTER.lng)
    assert second.rating is None

    params = calls[0]
    assert params["type"] == "cafe"
    assert params["radius"] == 3000
    assert params["key"] == "test-key"
    assert "opennow" not in params


def test_search_without_key_is_unavailable(tmp_path):
    client = PlacesClient(_settings(api_key=None), FileCache(tmp_path, enabled=False))
    assert not client.is_available()
    with pytest.raises(SourcingUnavailable):
        client.search(CENTER, "coffee", radius_km=3.0, max_results=5)


def test_error_status_raises_sourcing_unavailable(monkeypatch, tmp_path):
    monkeypatch.setattr(
        "meety.ingestion.places_client.get_json",
        lambda url, **kwargs: {"status": "REQUEST_DENIED", "error_message": "bad key"},
    )
    client = PlacesClient(_settings(), FileCache(tmp_path, enabled=False))
    with pytest.raises(SourcingUnavailable, match="bad key"):
        client.search(CENTER, "coffee", radius_km=3.0, max_results=5)


def test_transport_error_raises_sourcing_unavailable(monkeypatch, tmp_path):
    def boom(url, **kwargs):
        raise httpx.ConnectError("connection refused")

    monkeypatch.setattr("meety.ingestion.places_client.get_json", boom)
    client = PlacesClient(_settings(), FileCache(tmp_path, enabled=False))
    with pytest.raises(SourcingUnavailable, match="connection refused"):
        client.search(CENTER, "outdoor", radius_km=3.0, max_results=5)


def test_repeated_search_is_served_from_cache(monkeypatch, tmp_path):
    calls = []

    def fake_get_json(url, **kwargs):
        calls.append(kwargs["params"])
        return _payload()

    monkeypatch.setattr("meety.ingestion.places_client.get_json", fake_get_json)
    client = PlacesClient(_settings(open_now=True), FileCache(tmp_path, enabled=True))

    with capture_sourcing_trace() as trace, record_cache_stats() as stats:
        client.search(CENTER, "coffee", radius_km=3.0, max_results=5, open_now=True)
        assert trace.categories["coffee"]["mode"] == "live"
        again = client.search(CENTER, "coffee", radius_km=3.0, max_results=5, open_now=True)

    assert len(calls) == 1
    assert calls[0]["opennow"] == "true"
    assert len(again) == 3
    assert trace.categories["coffee"] == {"mode": "cache", "count": 3, "place_type": "cafe"}
    assert stats.hits == 1
    assert stats.sets == 1


def test_unknown_category_uses_default_place_type(tmp_path):
    client = PlacesClient(_settings(), FileCache(tmp_path, enabled=False))
    assert client.place_type("coffee") == "cafe"
    assert client.place_type("karaoke") == "restaurant"


def test_first_search_counts_one_miss(monkeypatch, tmp_path):
    monkeypatch.setattr("meety.ingestion.places_client.get_json", lambda url, **kwargs: _payload())
    client = PlacesClient(_settings(), FileCache(tmp_path, enabled=True))

    with record_cache_stats() as stats:
        client.search(CENTER, "coffee", radius_km=3.0, max_results=5)

    assert stats.as_dict() == {"hits": 0, "misses": 1, "sets": 1, "stale_fallbacks": 0}


def test_failed_search_serves_expired_cached_results(monkeypatch, tmp_path):
    monkeypatch.setattr("meety.core.cache.time.time", lambda: 0)
    monkeypatch.setattr("meety.ingestion.places_client.get_json", lambda url, **kwargs: _payload())
    client = PlacesClient(_settings(cache_ttl_seconds=60), FileCache(tmp_path, enabled=True))
    client.search(CENTER, "coffee", radius_km=3.0, max_results=5)

    def boom(url, **kwargs):
        raise httpx.ConnectError("connection refused")

    monkeypatch.setattr("meety.core.cache.time.time", lambda: 3600)
    monkeypatch.setattr("meety.ingestion.places_client.get_json", boom)
    with capture_sourcing_trace() as trace, record_cache_stats() as stats:
        found = client.search(CENTER, "coffee", radius_km=3.0, max_results=5)

    assert [c.external_ref for c in found] == ["abc", "def", "ghi"]
    assert trace.categories["coffee"]["mode"] == "stale"
    assert stats.stale_fallbacks == 1


def test_failed_search_without_cached_results_is_unavailable(monkeypatch, tmp_path):
    def boom(url, **kwargs):
        raise httpx.ConnectError("connection refused")

    monkeypatch.setattr("meety.ingestion.places_client.get_json", boom)
    client = PlacesClient(_settings(), FileCache(tmp_path, enabled=True))
    with pytest.raises(SourcingUnavailable):
        client.search(CENTER, "coffee", radius_km=3.0, max_results=5)
