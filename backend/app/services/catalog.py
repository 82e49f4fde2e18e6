"""Course catalog and discovery.

Nearest-neighbour search prefilters on the indexed ``(latitude, longitude)``
columns with a bounding box, then refines with the exact haversine distance.
Text search prefilters with ILIKE and ranks in Python, name matches weighing
more than description matches.
"""

import logging
import math
import re
from dataclasses import dataclass

from sqlalchemy import Select, func, or_, select
from sqlalchemy.orm import Session, joinedload

from app.core.errors import Forbidden, InvalidArgument, InvalidStateTransition, NotFound
from app.core.settings import settings
from app.db.concurrency import commit_once, run_optimistic
from app.models.course import Course
from app.models.player import Player
from app.models.round import Round
from app.schemas.course import CourseCreate, CourseFilters, CourseUpdate
from app.services.geo import bounding_box, haversine_km, validate_point

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 50
_TOKEN = re.compile(r"\w+")


@dataclass
class CourseHit:
    course: Course
    distance_km: float | None = None


@dataclass
class CoursePage:
    items: list[CourseHit]
    page: int
    page_size: int
    total: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.total else 0


def _active_courses() -> Select:
    return (
        select(Course)
        .options(joinedload(Course.owner))
        .where(Course.is_active.is_(True))
        .order_by(Course.id)
    )


def _check_radius(radius_km: float | None) -> float:
    if radius_km is None:
        return float(settings.NEARBY_DEFAULT_RADIUS_KM)
    if not 1 <= radius_km <= settings.NEARBY_MAX_RADIUS_KM:
        raise InvalidArgument(
            f"Radius must be between 1 and {settings.NEARBY_MAX_RADIUS_KM} km"
        )
    return float(radius_km)


def _check_page_size(size: int) -> None:
    if not 1 <= size <= MAX_PAGE_SIZE:
        raise InvalidArgument(f"limit must be between 1 and {MAX_PAGE_SIZE}")


def _like(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def distance_to(course: Course, longitude: float, latitude: float) -> float:
    validate_point(longitude, latitude)
    return haversine_km(course.longitude, course.latitude, longitude, latitude)


def get_course(db: Session, course_id: int) -> Course:
    course = db.execute(
        _active_courses().where(Course.id == course_id)
    ).scalars().unique().one_or_none()
    if not course:
        raise NotFound("Golf course not found")
    return course


def _within(db: Session, stmt: Select, longitude: float, latitude: float, radius_km: float) -> list[CourseHit]:
    box = bounding_box(longitude, latitude, radius_km)
    stmt = stmt.where(
        Course.latitude.between(box.min_lat, box.max_lat),
        or_(*[Course.longitude.between(lo, hi) for lo, hi in box.lon_ranges]),
    )

    hits = []
    for course in db.execute(stmt).scalars().unique():
        d = haversine_km(course.longitude, course.latitude, longitude, latitude)
        if d <= radius_km:
            hits.append(CourseHit(course=course, distance_km=d))

    # Stable: equidistant courses keep id order.
    hits.sort(key=lambda h: h.distance_km)
    return hits


def find_nearby(
    db: Session,
    longitude: float,
    latitude: float,
    radius_km: float | None = None,
    limit: int = 20,
) -> list[CourseHit]:
    validate_point(longitude, latitude)
    radius = _check_radius(radius_km)
    _check_page_size(limit)
    return _within(db, _active_courses(), longitude, latitude, radius)[:limit]


def _terms(text: str | None) -> list[str]:
    seen: dict[str, None] = {}
    for t in _TOKEN.findall((text or "").lower()):
        seen.setdefault(t, None)
    return list(seen)


def relevance(course: Course, terms: list[str]) -> float:
    name_words = _TOKEN.findall(course.name.lower())
    desc_words = _TOKEN.findall((course.description or "").lower())

    score = 0.0
    for term in terms:
        if term in name_words:
            score += 2.0
        elif any(w.startswith(term) for w in name_words):
            score += 1.0
        score += 0.5 * desc_words.count(term)
        # Inflected forms ("golfing" for "golf") weigh half an exact word.
        score += 0.25 * sum(1 for w in desc_words if w != term and w.startswith(term))
    return score


def search_by_text(
    db: Session,
    query: str | None = None,
    filters: CourseFilters | None = None,
    page: int = 1,
    page_size: int = 20,
) -> CoursePage:
    filters = filters or CourseFilters()
    if page < 1:
        raise InvalidArgument("page must be 1 or greater")
    _check_page_size(page_size)

    terms = _terms(query)
    stmt = _active_courses()
    if terms:
        stmt = stmt.where(
            or_(
                *[Course.name.ilike(_like(t), escape="\\") for t in terms],
                *[Course.description.ilike(_like(t), escape="\\") for t in terms],
            )
        )

    if filters.has_point:
        validate_point(filters.longitude, filters.latitude)
        radius = _check_radius(filters.radius_km)
        hits = _within(db, stmt, filters.longitude, filters.latitude, radius)
    else:
        if filters.location and filters.location.strip():
            needle = _like(filters.location.strip())
            stmt = stmt.where(
                or_(
                    Course.city.ilike(needle, escape="\\"),
                    Course.state.ilike(needle, escape="\\"),
                    Course.country.ilike(needle, escape="\\"),
                    Course.name.ilike(needle, escape="\\"),
                )
            )

        if not terms:
            # Nothing to rank by: page in SQL, ordered by name.
            total = db.execute(
                select(func.count(Course.id)).where(stmt.whereclause)
            ).scalar_one()
            rows = db.execute(
                stmt.order_by(None)
                .order_by(func.lower(Course.name), Course.id)
                .offset((page - 1) * page_size)
                .limit(page_size)
            ).scalars().unique().all()
            return CoursePage([CourseHit(c) for c in rows], page, page_size, total)

        hits = [CourseHit(c) for c in db.execute(stmt).scalars().unique()]

    if terms:
        scored = [(relevance(h.course, terms), h) for h in hits]
        scored = [(s, h) for s, h in scored if s > 0]
        scored.sort(key=lambda sh: (-sh[0], sh[1].course.name.lower(), sh[1].course.id))
        hits = [h for _, h in scored]
    else:
        hits.sort(key=lambda h: (h.course.name.lower(), h.course.id))

    start = (page - 1) * page_size
    return CoursePage(hits[start:start + page_size], page, page_size, len(hits))


def popular_courses(db: Session, limit: int = 10) -> list[Course]:
    _check_page_size(limit)
    stmt = (
        _active_courses()
        .where(Course.verified.is_(True))
        .order_by(None)
        .order_by(Course.rating_average.desc(), Course.rating_count.desc(), Course.id)
        .limit(limit)
    )
    return list(db.execute(stmt).scalars().unique().all())


def _round1(value: float) -> float:
    # Half-up to one decimal, as ratings are displayed.
    return math.floor(value * 10 + 0.5) / 10


def rate(db: Session, course_id: int, score: float) -> Course:
    if not 1 <= score <= 5:
        raise InvalidArgument("Rating must be between 1 and 5")

    def attempt() -> Course:
        course = get_course(db, course_id)
        count = course.rating_count
        average = course.rating_average
        # The stored average is already rounded, so long histories can drift by
        # a tenth depending on order; short ones such as 4, 5, 3 always land on 4.0.
        course.rating_average = _round1((average * count + score) / (count + 1))
        course.rating_count = count + 1
        return course

    course = run_optimistic(db, attempt, what=f"course {course_id} rating")
    logger.info(
        "Course %s rated %.1f -> average %.1f over %d",
        course_id, score, course.rating_average, course.rating_count,
    )
    return course


def _address_columns(address) -> dict:
    return {
        "street": address.street.strip(),
        "city": address.city.strip(),
        "state": (address.state or "").strip() or None,
        "country": address.country.strip(),
        "postal_code": (address.postal_code or "").strip() or None,
    }


def _info_columns(info) -> dict:
    return {
        "holes": info.holes,
        "par": info.par,
        "yardage": info.yardage,
        "course_rating": info.course_rating,
        "slope_rating": info.slope_rating,
    }


def _contact_columns(contact) -> dict:
    return {
        "phone": contact.phone,
        "email": (contact.email or "").strip().lower() or None,
        "website": contact.website,
    }


def create_course(db: Session, owner: Player, payload: CourseCreate) -> Course:
    validate_point(payload.location.longitude, payload.location.latitude)

    course = Course(
        owner_player_id=owner.id,
        name=payload.name.strip(),
        longitude=payload.location.longitude,
        latitude=payload.location.latitude,
        amenities=list(dict.fromkeys(payload.amenities)),
        pricing=payload.pricing.model_dump() if payload.pricing else None,
        description=payload.description,
        images=[i.model_dump() for i in payload.images],
        rating_average=0.0,
        rating_count=0,
        is_active=True,
        # New courses are reviewed before being marked verified.
        verified=False,
        **_address_columns(payload.address),
        **_contact_columns(payload.contact_info),
        **_info_columns(payload.course_info),
    )
    db.add(course)
    commit_once(db, what="course")
    logger.info("Course %s created by %s", course.id, owner.external_id)
    return get_course(db, course.id)


def _owned_course(db: Session, course_id: int, owner: Player) -> Course:
    course = get_course(db, course_id)
    if course.owner_player_id != owner.id:
        raise Forbidden("You can only edit golf courses you added")
    return course


def update_course(db: Session, course_id: int, owner: Player, patch: CourseUpdate) -> Course:
    course = _owned_course(db, course_id, owner)
    fields = patch.model_fields_set
    identity_changed = False

    if "name" in fields and patch.name is not None:
        name = patch.name.strip()
        identity_changed |= name != course.name
        course.name = name

    if "address" in fields and patch.address is not None:
        columns = _address_columns(patch.address)
        identity_changed |= any(getattr(course, k) != v for k, v in columns.items())
        for k, v in columns.items():
            setattr(course, k, v)

    if "location" in fields and patch.location is not None:
        lon, lat = patch.location.longitude, patch.location.latitude
        validate_point(lon, lat)
        identity_changed |= (lon, lat) != (course.longitude, course.latitude)
        course.longitude, course.latitude = lon, lat

    if "contact_info" in fields and patch.contact_info is not None:
        for k, v in _contact_columns(patch.contact_info).items():
            setattr(course, k, v)
    if "course_info" in fields and patch.course_info is not None:
        for k, v in _info_columns(patch.course_info).items():
            setattr(course, k, v)
    if "amenities" in fields and patch.amenities is not None:
        course.amenities = list(dict.fromkeys(patch.amenities))
    if "pricing" in fields:
        course.pricing = patch.pricing.model_dump() if patch.pricing else None
    if "description" in fields:
        course.description = patch.description
    if "images" in fields and patch.images is not None:
        course.images = [i.model_dump() for i in patch.images]

    if identity_changed and course.verified:
        course.verified = False
        logger.info("Course %s lost verification after identity change", course_id)

    commit_once(db, what=f"course {course_id}")
    return get_course(db, course_id)


def deactivate_course(db: Session, course_id: int, owner: Player) -> None:
    course = _owned_course(db, course_id, owner)

    active = db.execute(
        select(Round.id)
        .where(
            Round.course_id == course_id,
            Round.status.notin_(("completed", "cancelled")),
        )
        .limit(1)
    ).first()
    if active:
        raise InvalidStateTransition("Course has active rounds")

    course.is_active = False
    commit_once(db, what=f"course {course_id}")
    logger.info("Course %s deactivated", course_id)
