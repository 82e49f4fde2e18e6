from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_db
from app.db.base import Base
from app.db.session import make_engine
from app.models.course import Course
from app.main import app


@pytest.fixture()
def session_factory():
    engine = make_engine("sqlite+pysqlite:///:memory:", poolclass=StaticPool)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    yield TestingSessionLocal
    engine.dispose()


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def _headers(user_id: str = "u1") -> dict:
    return {"X-User-Id": user_id}


def _course_payload(name: str, lon: float, lat: float, **extra) -> dict:
    payload = {
        "name": name,
        "address": {"street": "1 Fairway Dr", "city": "Monterey", "state": "CA", "country": "USA"},
        "location": {"type": "Point", "coordinates": [lon, lat]},
        "course_info": {"holes": 18, "par": 72},
    }
    payload.update(extra)
    return payload


def _create(client, name: str, lon: float = 0.0, lat: float = 0.0, user_id: str = "u1", **extra) -> dict:
    resp = client.post("/api/v1/courses", json=_course_payload(name, lon, lat, **extra), headers=_headers(user_id))
    assert resp.status_code == 201, resp.text
    return resp.json()


def _set_verified(session_factory, course_id: int, verified: bool = True) -> None:
    with session_factory() as db:
        db.get(Course, course_id).verified = verified
        db.commit()


def test_create_course(client):
    data = _create(client, "Pebble Beach Golf Links", lon=-121.95, lat=36.57, amenities=["Pro Shop", "Bar"])

    assert data["name"] == "Pebble Beach Golf Links"
    assert data["owner_id"] == "u1"
    assert data["verified"] is False
    assert data["rating"] == {"average": 0.0, "count": 0}
    assert data["location"] == {"type": "Point", "coordinates": [-121.95, 36.57]}
    assert data["formatted_address"] == "1 Fairway Dr, Monterey, CA, USA"
    assert data["amenities"] == ["Pro Shop", "Bar"]

    # Courses are readable by any user.
    other = client.get(f"/api/v1/courses/{data['id']}", headers=_headers("u2"))
    assert other.status_code == 200
    assert other.json()["course_info"]["par"] == 72


@pytest.mark.parametrize("coordinates", [[181, 0], [0, 91], [-200, -95]])
def test_create_course_rejects_bad_coordinates(client, coordinates):
    payload = _course_payload("Nowhere", 0, 0)
    payload["location"]["coordinates"] = coordinates
    resp = client.post("/api/v1/courses", json=payload, headers=_headers())
    assert resp.status_code == 400
    assert resp.json()["kind"] == "invalid_argument"


def test_get_missing_course(client):
    resp = client.get("/api/v1/courses/999", headers=_headers())
    assert resp.status_code == 404
    assert resp.json() == {"detail": "Golf course not found", "kind": "not_found"}


def test_nearby_orders_by_distance_within_radius(client):
    far = _create(client, "Far", lon=10.0, lat=10.0)
    fifty_five = _create(client, "Fifty-five", lon=0.5, lat=0.0)
    eleven = _create(client, "Eleven", lon=0.1, lat=0.0)
    here = _create(client, "Here", lon=0.0, lat=0.0)

    resp = client.get("/api/v1/courses/nearby", params={"longitude": 0, "latitude": 0}, headers=_headers())
    assert resp.status_code == 200
    courses = resp.json()
    assert [c["id"] for c in courses] == [here["id"], eleven["id"]]
    assert [c["distance"] for c in courses] == [0.0, 11.1]

    wide = client.get(
        "/api/v1/courses/nearby",
        params={"longitude": 0, "latitude": 0, "radius": 100, "limit": 2},
        headers=_headers(),
    ).json()
    assert [c["id"] for c in wide] == [here["id"], eleven["id"]]

    wider = client.get(
        "/api/v1/courses/nearby",
        params={"longitude": 0, "latitude": 0, "radius": 100},
        headers=_headers(),
    ).json()
    assert [c["id"] for c in wider] == [here["id"], eleven["id"], fifty_five["id"]]
    assert far["id"] not in [c["id"] for c in wider]


def test_nearby_across_antimeridian(client):
    east = _create(client, "East", lon=179.95, lat=0.0)
    west = _create(client, "West", lon=-179.95, lat=0.0)

    courses = client.get(
        "/api/v1/courses/nearby",
        params={"longitude": 179.99, "latitude": 0, "radius": 20},
        headers=_headers(),
    ).json()
    assert [c["id"] for c in courses] == [east["id"], west["id"]]


@pytest.mark.parametrize(
    "params",
    [
        {"longitude": 0, "latitude": 0, "radius": 150},
        {"longitude": 0, "latitude": 0, "radius": 0.5},
        {"longitude": 190, "latitude": 0},
        {"longitude": 0, "latitude": 0, "limit": 51},
    ],
)
def test_nearby_rejects_bad_arguments(client, params):
    resp = client.get("/api/v1/courses/nearby", params=params, headers=_headers())
    assert resp.status_code == 400
    assert resp.json()["kind"] == "invalid_argument"


def test_text_search_ranks_name_matches_first(client):
    pine = _create(client, "Pine Valley Golf Club")
    view = _create(client, "Valley View", description="Valley views across the valley floor")
    _create(client, "Pebble Beach Golf Links")
    desc_only = _create(client, "Cypress Point", description="A short drive from the valley")

    resp = client.get("/api/v1/courses/search", params={"q": "valley"}, headers=_headers())
    assert resp.status_code == 200
    data = resp.json()
    assert [c["id"] for c in data["courses"]] == [view["id"], pine["id"], desc_only["id"]]
    assert data["pagination"] == {"page": 1, "limit": 20, "total": 3, "pages": 1}


def test_search_by_location_pages_by_name(client):
    _create(client, "Charlie")
    _create(client, "alpha")
    _create(client, "Bravo")
    elsewhere = _course_payload("Delta", 0, 0)
    elsewhere["address"]["city"] = "Pinehurst"
    elsewhere["address"]["state"] = "NC"
    client.post("/api/v1/courses", json=elsewhere, headers=_headers())

    page1 = client.get(
        "/api/v1/courses/search", params={"location": "monterey", "limit": 2}, headers=_headers()
    ).json()
    assert [c["name"] for c in page1["courses"]] == ["alpha", "Bravo"]
    assert page1["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}

    page2 = client.get(
        "/api/v1/courses/search",
        params={"location": "monterey", "limit": 2, "page": 2},
        headers=_headers(),
    ).json()
    assert [c["name"] for c in page2["courses"]] == ["Charlie"]


def test_search_within_radius(client):
    near = _create(client, "Harbor Links", lon=0.05, lat=0.0)
    _create(client, "Harbor Hills", lon=3.0, lat=0.0)

    data = client.get(
        "/api/v1/courses/search",
        params={"q": "harbor", "longitude": 0, "latitude": 0, "radius": 10},
        headers=_headers(),
    ).json()
    assert [c["id"] for c in data["courses"]] == [near["id"]]
    assert data["courses"][0]["distance"] == 5.6


def test_rating_running_average(client):
    course = _create(client, "Rated")
    url = f"/api/v1/courses/{course['id']}/rate"

    assert client.post(url, json={"rating": 4}, headers=_headers("u2")).json() == {"average": 4.0, "count": 1}
    assert client.post(url, json={"rating": 5}, headers=_headers("u3")).json() == {"average": 4.5, "count": 2}
    assert client.post(url, json={"rating": 3}, headers=_headers("u4")).json() == {"average": 4.0, "count": 3}

    assert client.post(url, json={"rating": 6}, headers=_headers()).status_code == 422
    assert client.post("/api/v1/courses/999/rate", json={"rating": 3}, headers=_headers()).status_code == 404


def test_rating_rounds_half_up(client):
    course = _create(client, "Rounded")
    url = f"/api/v1/courses/{course['id']}/rate"
    client.post(url, json={"rating": 5}, headers=_headers())
    client.post(url, json={"rating": 4}, headers=_headers())
    # (4.5 * 2 + 4) / 3 = 4.333...
    assert client.post(url, json={"rating": 4}, headers=_headers()).json()["average"] == 4.3


def test_only_creator_can_update(client):
    course = _create(client, "Mine")
    resp = client.put(f"/api/v1/courses/{course['id']}", json={"name": "Yours"}, headers=_headers("u2"))
    assert resp.status_code == 403
    assert resp.json()["kind"] == "forbidden"


def test_identity_change_clears_verification(client, session_factory):
    course = _create(client, "Old Name")
    _set_verified(session_factory, course["id"])
    url = f"/api/v1/courses/{course['id']}"

    resp = client.put(url, json={"description": "New clubhouse"}, headers=_headers())
    assert resp.status_code == 200
    assert resp.json()["verified"] is True

    resp = client.put(url, json={"name": "New Name"}, headers=_headers())
    assert resp.status_code == 200
    assert resp.json()["name"] == "New Name"
    assert resp.json()["verified"] is False

    _set_verified(session_factory, course["id"])
    resp = client.put(url, json={"location": {"coordinates": [1.0, 1.0]}}, headers=_headers())
    assert resp.json()["verified"] is False
    assert resp.json()["location"]["coordinates"] == [1.0, 1.0]


def test_popular_lists_verified_courses_by_rating(client, session_factory):
    low = _create(client, "Low")
    high = _create(client, "High")
    unverified = _create(client, "Unverified")
    for c in (low, high):
        _set_verified(session_factory, c["id"])

    client.post(f"/api/v1/courses/{low['id']}/rate", json={"rating": 2}, headers=_headers())
    client.post(f"/api/v1/courses/{high['id']}/rate", json={"rating": 5}, headers=_headers())
    client.post(f"/api/v1/courses/{unverified['id']}/rate", json={"rating": 5}, headers=_headers())

    popular = client.get("/api/v1/courses/popular", headers=_headers()).json()
    assert [c["id"] for c in popular] == [high["id"], low["id"]]


def test_deactivate_course(client):
    course = _create(client, "Closing")

    assert client.delete(f"/api/v1/courses/{course['id']}", headers=_headers("u2")).status_code == 403

    resp = client.delete(f"/api/v1/courses/{course['id']}", headers=_headers())
    assert resp.status_code == 200
    assert client.get(f"/api/v1/courses/{course['id']}", headers=_headers()).status_code == 404

    nearby = client.get("/api/v1/courses/nearby", params={"longitude": 0, "latitude": 0}, headers=_headers())
    assert nearby.json() == []


def test_cannot_deactivate_course_with_active_round(client):
    course = _create(client, "Busy")
    round_payload = {
        "name": "Saturday",
        "course_id": course["id"],
        "scheduled_date": (date.today() + timedelta(days=14)).isoformat(),
        "scheduled_time": "08:00",
        "game_format": "stroke-play",
    }
    assert client.post("/api/v1/rounds", json=round_payload, headers=_headers()).status_code == 201

    resp = client.delete(f"/api/v1/courses/{course['id']}", headers=_headers())
    assert resp.status_code == 409
    assert resp.json()["kind"] == "invalid_state_transition"


def test_distance_to_course(client):
    course = _create(client, "Measured", lon=0.0, lat=0.0)
    url = f"/api/v1/courses/{course['id']}"

    assert client.get(url, headers=_headers()).json()["distance"] is None
    data = client.get(url, params={"longitude": 0.0, "latitude": 1.0}, headers=_headers()).json()
    assert data["distance"] == 111.2

    bad = client.get(url, params={"longitude": 0.0, "latitude": 95.0}, headers=_headers())
    assert bad.status_code == 400


def test_health(client):
    resp = client.get("/api/v1/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


@pytest.mark.parametrize("order", [(4, 5, 3), (5, 4, 3), (3, 4, 5), (3, 5, 4), (4, 3, 5), (5, 3, 4)])
def test_rating_average_independent_of_order(client, order):
    course = _create(client, "Permuted")
    url = f"/api/v1/courses/{course['id']}/rate"
    for rating in order:
        last = client.post(url, json={"rating": rating}, headers=_headers())
    assert last.json() == {"average": 4.0, "count": 3}


def test_text_search_matches_inflected_description_words(client):
    exact = _create(client, "Golf Haven")
    inflected = _create(client, "Seaside", description="Great golfing by the sea")
    _create(client, "Driving Range Only")

    data = client.get("/api/v1/courses/search", params={"q": "golf"}, headers=_headers()).json()
    assert [c["id"] for c in data["courses"]] == [exact["id"], inflected["id"]]
