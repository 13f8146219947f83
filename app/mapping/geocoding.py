"""Nominatim geocoding, used only for human-readable labels"""

from typing import List, Optional
import httpx
import structlog

from app.config import settings
from app.mapping.providers.base import Coordinates

logger = structlog.get_logger()


class GeocodingError(Exception):
    """Geocoding collaborator failed"""


class NominatimGeocoder:
    """Forward and reverse lookups against a Nominatim instance"""

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self.base_url = settings.geocoding_base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(
            timeout=settings.mapping_timeout_seconds,
            headers={"User-Agent": settings.geocoding_user_agent},
        )

    async def _get(self, path: str, params: dict):
        try:
            response = await self._client.get(f"{self.base_url}{path}", params=params)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise GeocodingError(f"Geocoding request failed: {e}") from e

    async def search(self, query: str, limit: int = 5) -> List[dict]:
        """Free text -> candidate places near the hub"""
        data = await self._get(
            "/search",
            {
                "q": query,
                "format": "jsonv2",
                "limit": limit,
                "viewbox": _viewbox(),
            },
        )
        return [
            {
                "label": place.get("display_name"),
                "lat": float(place["lat"]),
                "lng": float(place["lon"]),
            }
            for place in data
            if "lat" in place and "lon" in place
        ]

    async def reverse(self, point: Coordinates) -> Optional[str]:
        data = await self._get(
            "/reverse",
            {"lat": point.lat, "lon": point.lng, "format": "jsonv2"},
        )
        return data.get("display_name")

    async def aclose(self) -> None:
        await self._client.aclose()


def _viewbox() -> str:
    # ~25 km box around the hub
    span = 0.23
    return ",".join(
        str(v)
        for v in (
            settings.hub_lng - span,
            settings.hub_lat + span,
            settings.hub_lng + span,
            settings.hub_lat - span,
        )
    )
