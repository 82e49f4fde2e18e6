"""Great-circle distance and the bounding box used to prefilter nearby searches."""

from dataclasses import dataclass
from math import asin, atan2, cos, degrees, radians, sin, sqrt

from app.core.errors import InvalidArgument

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class BoundingBox:
    min_lat: float
    max_lat: float
    # One range normally, two when the box crosses the antimeridian.
    lon_ranges: tuple[tuple[float, float], ...]


def validate_point(longitude: float, latitude: float) -> None:
    if longitude is None or latitude is None:
        raise InvalidArgument("longitude and latitude are required")
    if not -180 <= longitude <= 180:
        raise InvalidArgument("longitude must be between -180 and 180")
    if not -90 <= latitude <= 90:
        raise InvalidArgument("latitude must be between -90 and 90")


def haversine_km(lon1: float, lat1: float, lon2: float, lat2: float) -> float:
    """Distance in kilometers between two (longitude, latitude) points."""

    phi1 = radians(lat1)
    phi2 = radians(lat2)
    dlat = radians(lat2 - lat1)
    dlon = radians(lon2 - lon1)

    a = sin(dlat / 2) ** 2 + cos(phi1) * cos(phi2) * sin(dlon / 2) ** 2
    # Guard against a drifting a few ulps above 1 for antipodal points.
    a = min(1.0, a)
    return 2 * EARTH_RADIUS_KM * atan2(sqrt(a), sqrt(1 - a))


def bounding_box(longitude: float, latitude: float, radius_km: float) -> BoundingBox:
    """Smallest lat/lon box containing every point within radius_km.

    Near the poles the box widens to every longitude; across the antimeridian
    the longitude span is split in two.
    """

    angular = radius_km / EARTH_RADIUS_KM
    dlat = degrees(angular)
    min_lat = latitude - dlat
    max_lat = latitude + dlat

    if max_lat >= 90 or min_lat <= -90:
        return BoundingBox(max(min_lat, -90.0), min(max_lat, 90.0), ((-180.0, 180.0),))

    dlon = degrees(asin(min(1.0, sin(angular) / cos(radians(latitude)))))
    min_lon = longitude - dlon
    max_lon = longitude + dlon

    if dlon >= 180:
        ranges = ((-180.0, 180.0),)
    elif min_lon < -180:
        ranges = ((min_lon + 360, 180.0), (-180.0, max_lon))
    elif max_lon > 180:
        ranges = ((min_lon, 180.0), (-180.0, max_lon - 360))
    else:
        ranges = ((min_lon, max_lon),)

    return BoundingBox(min_lat, max_lat, ranges)
