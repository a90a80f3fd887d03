import math


EARTH_RADIUS_KM = 6371.0


def distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Great-circle distance between two points using the haversine formula.

    Inputs are degrees. Nothing is validated here: NaN or infinite coordinates
    come back as NaN, so callers must check their inputs first.
    """
    if not all(math.isfinite(value) for value in (lat1, lng1, lat2, lng2)):
        return math.nan

    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)

    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    # rounding can push near-antipodal points just past 1
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def estimate_eta_minutes(distance: float, speed_kmh: float = 30.0) -> int:
    """Rough travel time for display, rounded up to whole minutes."""
    if distance <= 0:
        return 0
    return max(1, math.ceil(distance / speed_kmh * 60))


def is_valid_coordinate(lat, lng) -> bool:
    if lat is None or lng is None:
        return False
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return False
    return -90 <= lat <= 90 and -180 <= lng <= 180
