from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.api.deps import get_current_player, get_current_user_id, get_db
from app.models.course import Course
from app.models.player import Player
from app.schemas.course import CourseCreate, CourseFilters, CourseUpdate
from app.services import catalog

router = APIRouter()


class GeoPointOut(BaseModel):
    type: str = "Point"
    coordinates: list[float]


class RatingOut(BaseModel):
    average: float
    count: int


class CourseOut(BaseModel):
    id: int
    name: str
    owner_id: str
    address: dict
    formatted_address: str
    location: GeoPointOut
    contact_info: dict
    course_info: dict
    amenities: list[str]
    pricing: dict | None
    description: str | None
    images: list[dict]
    rating: RatingOut
    verified: bool
    distance: float | None = None


class PaginationOut(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class CourseSearchOut(BaseModel):
    courses: list[CourseOut]
    pagination: PaginationOut


class RateIn(BaseModel):
    rating: float = Field(ge=1, le=5)


def _course_to_out(course: Course, distance_km: float | None = None) -> CourseOut:
    return CourseOut(
        id=course.id,
        name=course.name,
        owner_id=course.owner_id,
        address={
            "street": course.street,
            "city": course.city,
            "state": course.state,
            "country": course.country,
            "postal_code": course.postal_code,
        },
        formatted_address=course.formatted_address,
        location=GeoPointOut(coordinates=[course.longitude, course.latitude]),
        contact_info={"phone": course.phone, "email": course.email, "website": course.website},
        course_info={
            "holes": course.holes,
            "par": course.par,
            "yardage": course.yardage,
            "course_rating": course.course_rating,
            "slope_rating": course.slope_rating,
        },
        amenities=list(course.amenities or []),
        pricing=course.pricing,
        description=course.description,
        images=list(course.images or []),
        rating=RatingOut(average=course.rating_average, count=course.rating_count),
        verified=course.verified,
        distance=None if distance_km is None else round(distance_km, 1),
    )


@router.get("/courses/nearby", response_model=list[CourseOut])
def find_nearby_courses(
    longitude: float,
    latitude: float,
    radius: float | None = None,
    limit: int = 20,
    db: Session = Depends(get_db),
    _user_id: str = Depends(get_current_user_id),
):
    hits = catalog.find_nearby(db, longitude, latitude, radius, limit)
    return [_course_to_out(h.course, h.distance_km) for h in hits]


@router.get("/courses/search", response_model=CourseSearchOut)
def search_courses(
    q: str | None = None,
    location: str | None = None,
    latitude: float | None = None,
    longitude: float | None = None,
    radius: float | None = None,
    page: int = 1,
    limit: int = 20,
    db: Session = Depends(get_db),
    _user_id: str = Depends(get_current_user_id),
):
    filters = CourseFilters(location=location, longitude=longitude, latitude=latitude, radius_km=radius)
    result = catalog.search_by_text(db, q, filters, page, limit)
    return CourseSearchOut(
        courses=[_course_to_out(h.course, h.distance_km) for h in result.items],
        pagination=PaginationOut(
            page=result.page, limit=result.page_size, total=result.total, pages=result.pages
        ),
    )


@router.get("/courses/popular", response_model=list[CourseOut])
def popular_courses(
    limit: int = 10,
    db: Session = Depends(get_db),
    _user_id: str = Depends(get_current_user_id),
):
    return [_course_to_out(c) for c in catalog.popular_courses(db, limit)]


@router.get("/courses/{course_id}", response_model=CourseOut)
def get_course(
    course_id: int,
    longitude: float | None = None,
    latitude: float | None = None,
    db: Session = Depends(get_db),
    _user_id: str = Depends(get_current_user_id),
):
    course = catalog.get_course(db, course_id)
    if longitude is None or latitude is None:
        return _course_to_out(course)
    return _course_to_out(course, catalog.distance_to(course, longitude, latitude))


@router.post("/courses", response_model=CourseOut, status_code=201)
def create_course(
    payload: CourseCreate,
    db: Session = Depends(get_db),
    owner: Player = Depends(get_current_player),
):
    return _course_to_out(catalog.create_course(db, owner, payload))


@router.put("/courses/{course_id}", response_model=CourseOut)
def update_course(
    course_id: int,
    payload: CourseUpdate,
    db: Session = Depends(get_db),
    owner: Player = Depends(get_current_player),
):
    return _course_to_out(catalog.update_course(db, course_id, owner, payload))


@router.delete("/courses/{course_id}")
def deactivate_course(
    course_id: int,
    db: Session = Depends(get_db),
    owner: Player = Depends(get_current_player),
):
    catalog.deactivate_course(db, course_id, owner)
    return {"ok": True}


@router.post("/courses/{course_id}/rate", response_model=RatingOut)
def rate_course(
    course_id: int,
    payload: RateIn,
    db: Session = Depends(get_db),
    _user_id: str = Depends(get_current_user_id),
):
    course = catalog.rate(db, course_id, payload.rating)
    return RatingOut(average=course.rating_average, count=course.rating_count)
