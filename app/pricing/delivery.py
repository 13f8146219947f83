"""Delivery fee calculator: distance -> zone -> fee"""

import math
from dataclasses import dataclass
from typing import List, Optional

from app.errors import DeliveryOutOfRange


@dataclass(frozen=True)
class DeliveryTier:
    """One zone of the tier table.

    A tier applies when ``distance_km <= max_km``. Flat tiers charge
    ``flat_fee``; per-km tiers charge the round trip for every started km.
    """
    id: str
    name: str
    max_km: float
    flat_fee: int
    fee_per_km: Optional[float] = None

    def raw_fee(self, distance_km: float) -> int:
        if self.fee_per_km is None:
            return self.flat_fee
        round_trip_km = math.ceil(distance_km) * 2
        return int(round(round_trip_km * self.fee_per_km))


@dataclass(frozen=True)
class DeliveryQuote:
    """Result of mapping a distance onto the tier table"""
    distance_km: float
    fee: int
    zone_id: str
    zone_name: str


def parse_tiers(value: str) -> List[DeliveryTier]:
    """Parse ``id:name:max_km:flat_fee[:fee_per_km]`` entries separated by ``;``"""
    tiers = []
    for raw in value.split(";"):
        raw = raw.strip()
        if not raw:
            continue
        parts = raw.split(":")
        if len(parts) not in (4, 5):
            raise ValueError(f"Bad delivery tier: {raw!r}")
        fee_per_km = float(parts[4]) if len(parts) == 5 else None
        tiers.append(
            DeliveryTier(
                id=parts[0],
                name=parts[1],
                max_km=float(parts[2]),
                flat_fee=int(parts[3]),
                fee_per_km=fee_per_km,
            )
        )
    tiers.sort(key=lambda t: t.max_km)
    if not tiers:
        raise ValueError("At least one delivery tier is required")
    return tiers


class DeliveryFeeCalculator:
    """Step function from distance to fee, monotonic non-decreasing"""

    def __init__(self, tiers: List[DeliveryTier], max_km: Optional[float] = None):
        self.tiers = sorted(tiers, key=lambda t: t.max_km)
        self.max_km = max_km if max_km is not None else self.tiers[-1].max_km

    def quote(self, distance_km: float) -> DeliveryQuote:
        if distance_km < 0:
            raise ValueError("distance_km must be non-negative")
        if distance_km > self.max_km:
            raise DeliveryOutOfRange(
                f"Delivery is limited to {self.max_km:g} km (got {distance_km:.1f} km)"
            )

        # A farther tier never charges less than a nearer one
        floor = 0
        for tier in self.tiers:
            fee = max(floor, tier.raw_fee(distance_km))
            if distance_km <= tier.max_km:
                return DeliveryQuote(distance_km, fee, tier.id, tier.name)
            floor = max(floor, tier.raw_fee(tier.max_km))

        last = self.tiers[-1]
        return DeliveryQuote(distance_km, max(floor, last.raw_fee(distance_km)), last.id, last.name)

    def fee_for(self, distance_km: float) -> int:
        return self.quote(distance_km).fee


def default_calculator() -> DeliveryFeeCalculator:
    """Calculator built from the configured tier table"""
    from app.config import settings

    return DeliveryFeeCalculator(parse_tiers(settings.delivery_tiers), settings.max_delivery_km)
