import pytest
from fastapi.testclient import TestClient

from apps.api.main import create_app
from apps.core.errors import StoreTimeoutError


@pytest.fixture
def app(settings, store):
    return create_app(settings=settings, store=store)


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


def test_health(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"

    r = client.get("/api/health/db")
    assert r.status_code == 200
    assert r.json()["scope"] == "db"


def test_search_envelope_and_cache_header(client):
    params = {"query": "ESpanish", "page_size": 2}
    r = client.get("/api/events/search", params=params)
    assert r.status_code == 200
    assert r.headers["X-Search-Cache"] == "MISS"
    data = r.json()
    assert [row["name"] for row in data["rows"]] == ["ESpanish", "ESpanish Nights"]
    assert data["total_count"] == 3
    assert data["total_pages"] == 2
    assert data["has_next"] is True
    assert data["has_prev"] is False
    assert data["search_meta"]["query"] == "ESpanish"
    assert data["search_meta"]["sort_by"] == "relevance"

    again = client.get("/api/events/search", params=params)
    assert again.headers["X-Search-Cache"] == "HIT"
    assert again.json() == data


def test_search_comma_separated_facets(client):
    r = client.get("/api/events/search", params={
        "event_types": "festival, social",
        "skill_levels": "beginner",
        "sort": "date",
    })
    assert r.status_code == 200
    data = r.json()
    assert [row["name"] for row in data["rows"]] == ["Versailles Social"]
    assert data["search_meta"]["filters"] == {
        "event_types": ["festival", "social"],
        "skill_levels": ["beginner"],
    }


def test_search_with_location(client):
    r = client.get("/api/events/search", params={"lat": 48.8566, "lng": 2.3522, "radius_km": 5})
    assert r.status_code == 200
    rows = r.json()["rows"]
    assert [row["name"] for row in rows] == ["Paris Blues Weekend"]
    assert rows[0]["distance_km"] == 0.0


@pytest.mark.parametrize("params", [
    {"radius_km": 5},
    {"lat": 48.85},
    {"lat": 95, "lng": 2.35},
    {"sort": "nearest"},
    {"price_min": 100, "price_max": 10},
])
def test_malformed_filters_return_422(client, params):
    r = client.get("/api/events/search", params=params)
    assert r.status_code == 422


def test_store_timeout_returns_503(client, app, monkeypatch):
    def timeout(filters):
        raise StoreTimeoutError("search timed out after 5.00s")

    monkeypatch.setattr(app.state.search_service, "lookup", timeout)
    r = client.get("/api/events/search", params={"query": "blues"})
    assert r.status_code == 503
    assert r.headers["Retry-After"] == "5"


def test_suggest(client):
    r = client.get("/api/events/suggest", params={"q": "madrid"})
    assert r.status_code == 200
    assert r.json() == {
        "events": ["ESpanish Nights", "ESpanish"],
        "teachers": [],
        "musicians": [],
        "locations": ["Madrid", "Spain", "Madrid, Spain"],
    }


def test_suggest_kind_and_short_query(client):
    r = client.get("/api/events/suggest", params={"q": "blue", "kind": "musicians"})
    assert r.json()["musicians"] == ["Blue Moon Trio"]
    assert r.json()["events"] == []

    r = client.get("/api/events/suggest", params={"q": "b"})
    assert r.status_code == 200
    assert all(values == [] for values in r.json().values())

    r = client.get("/api/events/suggest", params={"q": "blue", "kind": "venues"})
    assert r.status_code == 422


def test_directory_search(client):
    r = client.get("/api/teachers/search", params={"q": "teacher", "hasUpcomingEvents": "true"})
    assert r.status_code == 200
    assert [row["name"] for row in r.json()["rows"]] == ["Dan Repsch"]

    r = client.get("/api/musicians/search", params={"q": "band", "genres": "swing"})
    assert [row["name"] for row in r.json()["rows"]] == ["Lindy Hoppers Orchestra"]

    r = client.get("/api/teachers/search", params={"q": "x"})
    assert r.status_code == 422


def test_directory_sort_options(client):
    r = client.get("/api/teachers/search", params={"q": "teacher", "sortOrder": "desc"})
    assert [row["name"] for row in r.json()["rows"]] == ["Old School Sam", "Dan Repsch"]

    r = client.get("/api/teachers/search", params={"q": "re", "sortBy": "relevance"})
    assert [row["name"] for row in r.json()["rows"]] == ["Dan Repsch", "Old School Sam"]

    r = client.get("/api/teachers/search", params={"q": "teacher", "sortBy": "upcoming_events"})
    assert r.status_code == 422


def test_non_ascii_digit_teacher_is_matched_by_name(client):
    r = client.get("/api/events/search", params={"teachers": "²"})
    assert r.status_code == 200
    assert r.json()["rows"] == []
