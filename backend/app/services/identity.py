from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.player import Player


@dataclass(frozen=True)
class UserRef:
    exists: bool
    is_active: bool

    @property
    def usable(self) -> bool:
        return self.exists and self.is_active


def resolve_user(db: Session, user_id: str) -> UserRef:
    """Look up an opaque user identifier in the registered-user directory."""

    user_id = (user_id or "").strip()
    if not user_id or user_id.startswith("guest:"):
        return UserRef(exists=False, is_active=False)

    active = db.execute(
        select(Player.is_active).where(Player.external_id == user_id)
    ).scalar_one_or_none()
    if active is None:
        return UserRef(exists=False, is_active=False)
    return UserRef(exists=True, is_active=bool(active))
