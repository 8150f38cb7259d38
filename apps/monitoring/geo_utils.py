# apps/monitoring/geo_utils.py
import math

EARTH_RADIUS_M = 6371000.0


def haversine_distance(lat1, lon1, lat2, lon2, earth_radius_km=EARTH_RADIUS_M / 1000.0):
    """Great-circle distance in kilometers between two (lat, lon) points in decimal degrees."""
    phi1, lam1, phi2, lam2 = map(math.radians, (lat1, lon1, lat2, lon2))
    h = math.sin((phi2 - phi1) / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin((lam2 - lam1) / 2) ** 2
    return 2 * earth_radius_km * math.asin(min(1.0, math.sqrt(h)))


def distance_in_meters(lat1, lon1, lat2, lon2):
    """
    Distance in meters. Coordinates may arrive as Decimal or str from
    serializers or stored JSON, so they are cast to float.
    """
    return haversine_distance(float(lat1), float(lon1), float(lat2), float(lon2)) * 1000.0
