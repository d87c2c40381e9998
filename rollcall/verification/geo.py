"""Great-circle distance helpers for the check-in geofence."""
import math

EARTH_RADIUS_METERS = 6371000


def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Distance in meters between two WGS84 points.

    Uses the haversine formula on a sphere of radius 6371 km, which is
    accurate to well under a meter at geofence scales.
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lng2 - lng1)

    a = (
        math.sin(delta_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_METERS * c


def is_valid_coordinate(lat: float, lng: float) -> bool:
    """Check that a latitude/longitude pair is finite and in range."""
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return False
    return -90 <= lat <= 90 and -180 <= lng <= 180


def geofence_violation(
    lat: float | None,
    lng: float | None,
    center_lat: float | None,
    center_lng: float | None,
    radius_meters: int | float,
    location_denied: bool = False,
) -> str | None:
    """
    Evaluate a submitted location against a circular geofence.

    Returns None when the location is inside the radius, otherwise the
    reason string stored on the attendance record.
    """
    if location_denied or lat is None or lng is None or not is_valid_coordinate(lat, lng):
        return "location access denied"

    if center_lat is None or center_lng is None:
        # Event has no centre configured; nothing to compare against.
        return None

    distance = haversine_distance(lat, lng, center_lat, center_lng)
    radius = radius_meters or 0
    if distance > radius:
        return f"location {round(distance)}m away from event (allowed: {radius}m)"
    return None
