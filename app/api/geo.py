"""Place search and reverse geocoding for the map picker"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from app.mapping import Coordinates, MappingService, get_mapping_service

router = APIRouter()


class PlaceResult(BaseModel):
    label: Optional[str]
    lat: float
    lng: float


class ReverseResult(BaseModel):
    label: Optional[str]


@router.get("/search", response_model=List[PlaceResult])
async def search(
    q: str = Query(..., min_length=2),
    mapping: MappingService = Depends(get_mapping_service),
):
    """Free text to candidate places near the hub"""
    return await mapping.search(q)


@router.get("/reverse", response_model=ReverseResult)
async def reverse(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    mapping: MappingService = Depends(get_mapping_service),
):
    """Human-readable label for a pin"""
    return ReverseResult(label=await mapping.reverse(Coordinates(lat, lng)))
