from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.types import JSONDocument


class Course(Base):
    __tablename__ = "courses"
    __table_args__ = (
        # Bounding-box prefilter for nearest-neighbour search.
        Index("ix_courses_lat_lon", "latitude", "longitude"),
        Index("ix_courses_city_state", "city", "state"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    owner_player_id: Mapped[int] = mapped_column(
        ForeignKey("players.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)

    street: Mapped[str] = mapped_column(String(200), nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    state: Mapped[str | None] = mapped_column(String(100))
    country: Mapped[str] = mapped_column(String(100), nullable=False)
    postal_code: Mapped[str | None] = mapped_column(String(20))

    # GeoJSON order is (longitude, latitude).
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)

    phone: Mapped[str | None] = mapped_column(String(40))
    email: Mapped[str | None] = mapped_column(String(320))
    website: Mapped[str | None] = mapped_column(String(300))

    holes: Mapped[int] = mapped_column(Integer, nullable=False, default=18)
    par: Mapped[int | None] = mapped_column(Integer)
    yardage: Mapped[int | None] = mapped_column(Integer)
    course_rating: Mapped[float | None] = mapped_column(Float)
    slope_rating: Mapped[int | None] = mapped_column(Integer)

    amenities: Mapped[list] = mapped_column(JSONDocument, nullable=False, default=list)
    pricing: Mapped[dict | None] = mapped_column(JSONDocument)
    description: Mapped[str | None] = mapped_column(Text)
    images: Mapped[list] = mapped_column(JSONDocument, nullable=False, default=list)

    rating_average: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    rating_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Optimistic-concurrency counter; the ORM adds "WHERE version = ?" to every UPDATE.
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    owner = relationship("Player")

    __mapper_args__ = {"version_id_col": version}

    @property
    def owner_id(self) -> str:
        # External identity (Auth0 `sub` in prod, X-User-Id in dev).
        return self.owner.external_id if self.owner else ""

    @property
    def formatted_address(self) -> str:
        address = self.street
        if self.city:
            address += f", {self.city}"
        if self.state:
            address += f", {self.state}"
        if self.postal_code:
            address += f" {self.postal_code}"
        if self.country:
            address += f", {self.country}"
        return address
