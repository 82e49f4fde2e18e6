from typing import Literal

from pydantic import BaseModel, Field

Amenity = Literal[
    "Pro Shop",
    "Restaurant",
    "Bar",
    "Driving Range",
    "Putting Green",
    "Cart Rental",
    "Club Rental",
    "Lessons Available",
    "Locker Room",
    "Parking",
]


class AddressIn(BaseModel):
    street: str = Field(min_length=1, max_length=200)
    city: str = Field(min_length=1, max_length=100)
    state: str | None = Field(default=None, max_length=100)
    country: str = Field(min_length=1, max_length=100)
    postal_code: str | None = Field(default=None, max_length=20)


class LocationIn(BaseModel):
    type: Literal["Point"] = "Point"
    # [longitude, latitude]; ranges are checked by the catalog (InvalidArgument).
    coordinates: list[float] = Field(min_length=2, max_length=2)

    @property
    def longitude(self) -> float:
        return self.coordinates[0]

    @property
    def latitude(self) -> float:
        return self.coordinates[1]


class ContactInfoIn(BaseModel):
    phone: str | None = Field(default=None, max_length=40)
    email: str | None = Field(default=None, max_length=320)
    website: str | None = Field(default=None, max_length=300)


class CourseInfoIn(BaseModel):
    holes: Literal[9, 18, 27, 36] = 18
    par: int | None = Field(default=None, ge=27, le=144)
    yardage: int | None = Field(default=None, ge=1000, le=10000)
    course_rating: float | None = Field(default=None, ge=50, le=80)
    slope_rating: int | None = Field(default=None, ge=55, le=155)


class PricingIn(BaseModel):
    green_fee_18: float | None = Field(default=None, ge=0)
    green_fee_9: float | None = Field(default=None, ge=0)
    cart_fee: float | None = Field(default=None, ge=0)
    currency: str = Field(default="USD", max_length=3)


class ImageIn(BaseModel):
    url: str = Field(min_length=1)
    caption: str | None = Field(default=None, max_length=200)


class CourseCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    address: AddressIn
    location: LocationIn
    contact_info: ContactInfoIn = Field(default_factory=ContactInfoIn)
    course_info: CourseInfoIn = Field(default_factory=CourseInfoIn)
    amenities: list[Amenity] = []
    pricing: PricingIn | None = None
    description: str | None = Field(default=None, max_length=1000)
    images: list[ImageIn] = []


class CourseUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    address: AddressIn | None = None
    location: LocationIn | None = None
    contact_info: ContactInfoIn | None = None
    course_info: CourseInfoIn | None = None
    amenities: list[Amenity] | None = None
    pricing: PricingIn | None = None
    description: str | None = Field(default=None, max_length=1000)
    images: list[ImageIn] | None = None


class CourseFilters(BaseModel):
    """Optional narrowing for text search."""

    location: str | None = None
    longitude: float | None = None
    latitude: float | None = None
    radius_km: float | None = None

    @property
    def has_point(self) -> bool:
        return self.longitude is not None and self.latitude is not None
