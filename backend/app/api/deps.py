from __future__ import annotations

from collections.abc import Generator
import json
import logging
import time
import urllib.request

from fastapi import Depends, Header, HTTPException
from jose import jwt
from jose.exceptions import JWTError
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.errors import NotFound
from app.core.settings import settings
from app.db.session import SessionLocal
from app.models.player import Player

logger = logging.getLogger(__name__)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ensure_player(db: Session, external_id: str) -> Player:
    """Directory entry for an authenticated identity, created on first sight."""

    external_id = (external_id or "").strip()
    player = db.execute(select(Player).where(Player.external_id == external_id)).scalars().one_or_none()
    if player:
        if not player.is_active:
            raise NotFound("User account is inactive")
        return player

    player = Player(external_id=external_id, is_active=True)
    db.add(player)
    db.flush()
    return player


_JWKS_CACHE: dict | None = None
_JWKS_CACHE_UNTIL: float = 0


def _get_jwks() -> dict:
    global _JWKS_CACHE, _JWKS_CACHE_UNTIL

    if _JWKS_CACHE and time.time() < _JWKS_CACHE_UNTIL:
        return _JWKS_CACHE

    if not settings.AUTH0_DOMAIN:
        raise RuntimeError("AUTH0_DOMAIN not configured")

    url = f"https://{settings.AUTH0_DOMAIN}/.well-known/jwks.json"
    with urllib.request.urlopen(url, timeout=5) as resp:
        data = json.loads(resp.read().decode("utf-8"))

    _JWKS_CACHE = data
    _JWKS_CACHE_UNTIL = time.time() + 3600
    return data


def _bearer_token(authorization: str | None) -> str:
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing Authorization header")
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Invalid Authorization header")
    return parts[1]


def _verified_subject(token: str) -> str:
    try:
        kid = jwt.get_unverified_header(token).get("kid")
        key = next((k for k in _get_jwks().get("keys", []) if k.get("kid") == kid), None)
        if not key:
            raise HTTPException(status_code=401, detail="Unable to find signing key")

        payload = jwt.decode(
            token,
            key,
            algorithms=["RS256"],
            audience=settings.AUTH0_AUDIENCE,
            issuer=f"https://{settings.AUTH0_DOMAIN}/",
        )
    except JWTError as exc:
        logger.info("Rejected bearer token: %s", exc)
        raise HTTPException(status_code=401, detail="Invalid token")

    sub = payload.get("sub")
    if not sub:
        raise HTTPException(status_code=401, detail="Token missing sub")
    return str(sub)


def get_current_user_id(
    authorization: str | None = Header(default=None),
    x_user_id: str | None = Header(default=None),
) -> str:
    """Opaque identity of the caller; sessions and logins live elsewhere."""

    # Dev fallback until Auth0 is configured.
    if not (settings.AUTH0_DOMAIN and settings.AUTH0_AUDIENCE):
        if settings.AUTH0_REQUIRED:
            raise HTTPException(status_code=503, detail="Authentication is not configured")
        return x_user_id or "dev-user"

    return _verified_subject(_bearer_token(authorization))


def get_current_player(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> Player:
    player = ensure_player(db, user_id)
    # Persist first-seen players now so a rolled back retry cannot drop them.
    db.commit()
    return player
