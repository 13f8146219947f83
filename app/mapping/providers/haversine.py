"""Straight-line distance provider"""

import math

from app.mapping.providers.base import BaseRoutingProvider, Coordinates

EARTH_RADIUS_KM = 6371.0


def haversine_km(origin: Coordinates, destination: Coordinates) -> float:
    lat1, lat2 = math.radians(origin.lat), math.radians(destination.lat)
    d_lat = lat2 - lat1
    d_lng = math.radians(destination.lng - origin.lng)
    a = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


class HaversineProvider(BaseRoutingProvider):
    """Great-circle distance; never fails, used as the fallback"""

    name = "haversine"

    async def distance_km(self, origin: Coordinates, destination: Coordinates) -> float:
        return round(haversine_km(origin, destination), 1)
