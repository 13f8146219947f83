"""Mapping service: routing with fallback plus geocoding.

One instance lives on ``app.state`` for the process lifetime. Handlers get
it through ``get_mapping_service`` instead of reaching for a module global.
"""

from typing import List, Optional
import structlog
from fastapi import Request

from app.config import settings
from app.errors import ExternalServiceError
from app.mapping.geocoding import GeocodingError, NominatimGeocoder
from app.mapping.providers.base import BaseRoutingProvider, Coordinates, RoutingError
from app.mapping.providers.haversine import HaversineProvider
from app.mapping.providers.osrm import OSRMProvider

logger = structlog.get_logger()

PROVIDERS = {
    "osrm": OSRMProvider,
    "haversine": HaversineProvider,
}


def _get_provider_instance(name: Optional[str]) -> Optional[BaseRoutingProvider]:
    if not name:
        return None
    provider_class = PROVIDERS.get(name)
    if not provider_class:
        raise ValueError(f"Unknown routing provider: {name}")
    return provider_class()


class MappingService:
    """Init-once wrapper around the routing and geocoding collaborators"""

    def __init__(
        self,
        provider: Optional[BaseRoutingProvider] = None,
        fallback: Optional[BaseRoutingProvider] = None,
        geocoder: Optional[NominatimGeocoder] = None,
    ):
        self._provider = provider
        self._fallback = fallback
        self._geocoder = geocoder
        self._ready = provider is not None

    @property
    def is_ready(self) -> bool:
        return self._ready

    def init(self) -> "MappingService":
        """Create collaborators on first use; later calls are no-ops"""
        if self._ready:
            return self
        self._provider = _get_provider_instance(settings.routing_provider)
        if self._fallback is None:
            self._fallback = _get_provider_instance(settings.fallback_routing_provider)
        self._ready = True
        logger.info(
            "Mapping service ready",
            provider=self._provider.name,
            fallback=self._fallback.name if self._fallback else None,
        )
        return self

    async def close(self) -> None:
        for collaborator in (self._provider, self._fallback, self._geocoder):
            if collaborator is not None:
                await collaborator.aclose()
        self._ready = False

    async def distance_km(
        self,
        origin: Coordinates,
        destination: Coordinates,
        allow_fallback: bool = True,
    ) -> float:
        """Road distance, degrading to the fallback provider when allowed"""
        self.init()
        try:
            return await self._provider.distance_km(origin, destination)
        except RoutingError as e:
            logger.warning(
                "Primary routing provider failed",
                provider=self._provider.name,
                error=str(e),
            )
            if not allow_fallback or self._fallback is None:
                raise ExternalServiceError("Could not calculate road distance") from e
            return await self._fallback.distance_km(origin, destination)

    def _geocoding(self) -> NominatimGeocoder:
        if self._geocoder is None:
            self._geocoder = NominatimGeocoder()
        return self._geocoder

    async def search(self, query: str) -> List[dict]:
        try:
            return await self._geocoding().search(query)
        except GeocodingError as e:
            logger.warning("Geocoding search failed", error=str(e))
            raise ExternalServiceError("Place search is unavailable") from e

    async def reverse(self, point: Coordinates) -> Optional[str]:
        try:
            return await self._geocoding().reverse(point)
        except GeocodingError as e:
            logger.warning("Reverse geocoding failed", error=str(e))
            raise ExternalServiceError("Address lookup is unavailable") from e


def get_mapping_service(request: Request) -> MappingService:
    """FastAPI dependency returning the app-wide mapping service"""
    service = getattr(request.app.state, "mapping", None)
    if service is None:
        service = MappingService()
        request.app.state.mapping = service
    return service.init()
