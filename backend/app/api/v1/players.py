from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.api.deps import get_current_player, get_db
from app.models.player import Player

router = APIRouter()


class PlayerMeOut(BaseModel):
    id: int
    external_id: str
    email: str | None
    username: str | None
    name: str | None
    handicap: float | None
    is_active: bool

    class Config:
        from_attributes = True


class PlayerMeUpdateIn(BaseModel):
    email: str | None = None
    username: str | None = None
    name: str | None = None
    # Profile handicap; rounds carry their own round handicap.
    handicap: float | None = Field(default=None, ge=-10, le=36)


@router.get("/players/me", response_model=PlayerMeOut)
def upsert_me(
    db: Session = Depends(get_db),
    player: Player = Depends(get_current_player),
):
    db.commit()
    db.refresh(player)
    return player


@router.patch("/players/me", response_model=PlayerMeOut)
def update_me(
    payload: PlayerMeUpdateIn,
    db: Session = Depends(get_db),
    player: Player = Depends(get_current_player),
):
    if payload.email is not None:
        player.email = payload.email.strip().lower() or None
    if payload.username is not None:
        player.username = payload.username.strip() or None
    if payload.name is not None:
        player.name = payload.name.strip() or None
    if payload.handicap is not None:
        player.handicap = round(payload.handicap, 1)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="email/username already in use")

    db.refresh(player)
    return player
