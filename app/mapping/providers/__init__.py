"""Routing provider implementations"""

from app.mapping.providers.base import BaseRoutingProvider, Coordinates, RoutingError
from app.mapping.providers.haversine import HaversineProvider
from app.mapping.providers.osrm import OSRMProvider

__all__ = [
    "BaseRoutingProvider",
    "Coordinates",
    "RoutingError",
    "HaversineProvider",
    "OSRMProvider",
]
