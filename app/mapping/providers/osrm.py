"""OSRM road-distance provider"""

from typing import Optional
import httpx
import structlog

from app.config import settings
from app.mapping.providers.base import BaseRoutingProvider, Coordinates, RoutingError

logger = structlog.get_logger()


class OSRMProvider(BaseRoutingProvider):
    """Driving distance from an OSRM ``/route`` endpoint"""

    name = "osrm"

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self.base_url = settings.osrm_base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=settings.mapping_timeout_seconds)

    async def distance_km(self, origin: Coordinates, destination: Coordinates) -> float:
        url = (
            f"{self.base_url}/route/v1/driving/"
            f"{origin.lng},{origin.lat};{destination.lng},{destination.lat}"
        )
        try:
            response = await self._client.get(url, params={"overview": "false"})
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise RoutingError(f"OSRM request failed: {e}") from e

        routes = data.get("routes") or []
        if data.get("code") != "Ok" or not routes:
            raise RoutingError(f"OSRM could not route: {data.get('code')}")

        meters = routes[0].get("distance")
        if meters is None:
            raise RoutingError("OSRM response missing distance")

        return round(meters / 1000, 1)

    async def aclose(self) -> None:
        await self._client.aclose()
