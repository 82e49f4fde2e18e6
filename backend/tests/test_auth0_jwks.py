import time

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from jose.utils import base64url_encode
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api import deps
from app.api.deps import get_db
from app.core.settings import settings
from app.db.base import Base
from app.db.session import make_engine
from app.models.player import Player
from app.main import app


def _make_rsa_keypair_jwk(*, kid: str):
    from cryptography.hazmat.primitives import serialization
    from cryptography.hazmat.primitives.asymmetric import rsa

    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")

    pub = private_key.public_key().public_numbers()
    n = base64url_encode(pub.n.to_bytes((pub.n.bit_length() + 7) // 8, "big")).decode("utf-8")
    e = base64url_encode(pub.e.to_bytes((pub.e.bit_length() + 7) // 8, "big")).decode("utf-8")

    jwk = {"kty": "RSA", "kid": kid, "use": "sig", "alg": "RS256", "n": n, "e": e}
    return private_pem, jwk


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


@pytest.fixture()
def auth0(monkeypatch):
    monkeypatch.setattr(settings, "AUTH0_DOMAIN", "example.test")
    monkeypatch.setattr(settings, "AUTH0_AUDIENCE", "https://golf-api")

    private_pem, jwk = _make_rsa_keypair_jwk(kid="test-kid")
    monkeypatch.setattr(deps, "_JWKS_CACHE", None)
    monkeypatch.setattr(deps, "_JWKS_CACHE_UNTIL", 0)
    monkeypatch.setattr(deps, "_get_jwks", lambda: {"keys": [jwk]})

    def make_token(sub: str = "auth0|user123", **overrides) -> str:
        claims = {
            "sub": sub,
            "aud": settings.AUTH0_AUDIENCE,
            "iss": f"https://{settings.AUTH0_DOMAIN}/",
            "exp": int(time.time()) + 60,
        }
        claims.update(overrides)
        return jwt.encode(claims, private_pem, algorithm="RS256", headers={"kid": "test-kid"})

    return make_token


def test_players_me_with_mocked_jwks(client, auth0):
    missing = client.get("/api/v1/players/me")
    assert missing.status_code == 401

    resp = client.get("/api/v1/players/me", headers={"Authorization": f"Bearer {auth0()}"})
    assert resp.status_code == 200
    assert resp.json()["external_id"] == "auth0|user123"
    assert resp.json()["is_active"] is True


def test_rejects_expired_and_foreign_tokens(client, auth0):
    expired = auth0(exp=int(time.time()) - 60)
    resp = client.get("/api/v1/players/me", headers={"Authorization": f"Bearer {expired}"})
    assert resp.status_code == 401

    wrong_audience = auth0(aud="https://someone-else")
    resp = client.get("/api/v1/players/me", headers={"Authorization": f"Bearer {wrong_audience}"})
    assert resp.status_code == 401

    resp = client.get("/api/v1/players/me", headers={"Authorization": "Token abc"})
    assert resp.status_code == 401


def test_bearer_identity_owns_created_courses(client, auth0):
    token = auth0(sub="auth0|owner")
    payload = {
        "name": "Token Links",
        "address": {"street": "1 Tee Rd", "city": "Austin", "country": "USA"},
        "location": {"coordinates": [-97.74, 30.27]},
    }
    resp = client.post("/api/v1/courses", json=payload, headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 201
    assert resp.json()["owner_id"] == "auth0|owner"


def test_required_auth_without_configuration(client, monkeypatch):
    monkeypatch.setattr(settings, "AUTH0_DOMAIN", None)
    monkeypatch.setattr(settings, "AUTH0_REQUIRED", True)

    resp = client.get("/api/v1/players/me", headers={"X-User-Id": "u1"})
    assert resp.status_code == 503


def test_inactive_player_is_not_found(client, session_factory):
    assert client.get("/api/v1/players/me", headers={"X-User-Id": "gone"}).status_code == 200
    with session_factory() as db:
        db.execute(select(Player).where(Player.external_id == "gone")).scalar_one().is_active = False
        db.commit()

    resp = client.get("/api/v1/players/me", headers={"X-User-Id": "gone"})
    assert resp.status_code == 404
    assert resp.json()["kind"] == "not_found"


def test_profile_update(client):
    resp = client.patch(
        "/api/v1/players/me",
        json={"name": " Ada ", "handicap": 12.345, "email": "ADA@Example.com"},
        headers={"X-User-Id": "ada"},
    )
    assert resp.status_code == 200
    assert resp.json()["name"] == "Ada"
    assert resp.json()["handicap"] == 12.3
    assert resp.json()["email"] == "ada@example.com"

    taken = client.patch("/api/v1/players/me", json={"email": "ada@example.com"}, headers={"X-User-Id": "bob"})
    assert taken.status_code == 409

    assert client.patch("/api/v1/players/me", json={"handicap": 40}, headers={"X-User-Id": "ada"}).status_code == 422
