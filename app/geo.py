"""Great-circle distance helpers for geofence checks."""
import math

EARTH_RADIUS_KM = 6371.0


def haversine_km(
    lat1: float, lon1: float, lat2: float, lon2: float, earth_radius_km: float = EARTH_RADIUS_KM
) -> float:
    """
    Distance in kilometers between two WGS84 points (decimal degrees).

    Symmetric, and 0.0 for identical points.
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    # clamp: rounding can push a slightly above 1 for antipodal points
    a = min(1.0, max(0.0, a))
    return earth_radius_km * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def within_radius(distance_km: float, radius_km: float) -> bool:
    """Inclusive geofence test: a point exactly on the boundary is inside."""
    return distance_km <= radius_km


def format_distance(distance_km: float) -> str:
    """Two-decimal rendering used in user-facing status messages."""
    return f"{distance_km:.2f}"
