"""Delivery ETA estimate: prep time + travel time + buffer"""

from datetime import datetime, timedelta
from typing import Optional, Tuple

TRAVEL_MIN_PER_KM = 2
TRAVEL_MAX_PER_KM = 3
BUFFER_MIN = 5
BUFFER_MAX = 12


def eta_range(
    distance_km: float,
    priority: bool = False,
    prep_minutes: Optional[int] = None,
) -> Tuple[int, int]:
    """Return (min, max) minutes until the order reaches the customer"""
    if prep_minutes is not None:
        prep_min = prep_max = prep_minutes
    elif priority:
        prep_min, prep_max = 10, 15
    else:
        prep_min, prep_max = 15, 22

    distance_km = max(0.0, distance_km or 0.0)
    travel_min = round(distance_km * TRAVEL_MIN_PER_KM)
    travel_max = round(distance_km * TRAVEL_MAX_PER_KM)

    return prep_min + travel_min + BUFFER_MIN, prep_max + travel_max + BUFFER_MAX


def estimated_delivery_at(
    accepted_at: datetime,
    prep_minutes: int,
    distance_km: Optional[float],
) -> datetime:
    """Upper end of the ETA range, anchored at acceptance time"""
    _, upper = eta_range(distance_km or 0.0, prep_minutes=prep_minutes)
    return accepted_at + timedelta(minutes=upper)
