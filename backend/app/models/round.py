from datetime import date, datetime

from sqlalchemy import Date, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.types import JSONDocument


class Round(Base):
    """A scheduled outing. Teams and players are embedded in ``teams``."""

    __tablename__ = "rounds"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)

    # Organizer (the only one allowed to edit, delete or change status).
    owner_player_id: Mapped[int] = mapped_column(
        ForeignKey("players.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    course_id: Mapped[int | None] = mapped_column(
        ForeignKey("courses.id", ondelete="RESTRICT"), index=True
    )
    custom_course: Mapped[dict | None] = mapped_column(JSONDocument)

    scheduled_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    scheduled_time: Mapped[str] = mapped_column(String(5), nullable=False)
    game_format: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="draft", index=True)

    settings: Mapped[dict] = mapped_column(JSONDocument, nullable=False)
    teams: Mapped[list] = mapped_column(JSONDocument, nullable=False, default=list)
    results: Mapped[dict] = mapped_column(JSONDocument, nullable=False, default=dict)
    weather: Mapped[dict | None] = mapped_column(JSONDocument)
    invitations: Mapped[list] = mapped_column(JSONDocument, nullable=False, default=list)
    comments: Mapped[list] = mapped_column(JSONDocument, nullable=False, default=list)

    # Compare-and-swap counter for roster, score and status writes.
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    course = relationship("Course")
    owner = relationship("Player")

    __mapper_args__ = {"version_id_col": version}

    @property
    def owner_id(self) -> str:
        return self.owner.external_id if self.owner else ""
