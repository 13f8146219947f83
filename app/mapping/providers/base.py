"""Base routing provider interface"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float


class RoutingError(Exception):
    """Routing collaborator could not produce a distance"""


class BaseRoutingProvider(ABC):
    """Abstract base class for distance providers"""

    name = "base"

    @abstractmethod
    async def distance_km(self, origin: Coordinates, destination: Coordinates) -> float:
        """Travel distance between two points, in km rounded to 0.1"""
        pass

    async def aclose(self) -> None:
        """Release network resources (override in subclass)"""
        return None
