"""Mapping collaborators: routing distance and geocoding"""

from app.mapping.providers.base import Coordinates
from app.mapping.service import MappingService, get_mapping_service

__all__ = ["Coordinates", "MappingService", "get_mapping_service"]
