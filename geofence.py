"""Location checks for employee clock-in and clock-out."""
import math

from utils import round_half_up

EARTH_RADIUS_M = 6371e3


class OutOfRangeError(ValueError):
    """Raised when a position lies outside the cafe radius."""

    def __init__(self, distance, radius):
        self.distance = distance
        self.radius = radius
        super().__init__(
            f"Anda terlalu jauh dari cafe ({round_half_up(distance)}m). "
            f"Maksimal {_format_radius(radius)}m."
        )


def _format_radius(radius):
    if float(radius).is_integer():
        return str(int(radius))
    return str(radius)


def haversine_distance(lat1, lon1, lat2, lon2):
    """Great-circle distance in metres between two coordinates."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = (math.sin(d_phi / 2) ** 2
         + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def check_geofence(latitude, longitude, location):
    """Return the distance to the cafe, raising OutOfRangeError past the radius.

    ``location`` is a mapping with ``lat``, ``lng`` and ``radius`` (metres).
    """
    distance = haversine_distance(
        float(latitude), float(longitude),
        float(location['lat']), float(location['lng'])
    )
    radius = location.get('radius', 200)
    if distance > float(radius):
        raise OutOfRangeError(distance, radius)
    return distance
