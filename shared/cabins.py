"""Cabin classes and the seats.aero field layout for each of them."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class Cabin(str, Enum):
    """Closed set of cabin classes understood by both upstream sources."""

    ECONOMY = "economy"
    PREMIUM_ECONOMY = "premium_economy"
    BUSINESS = "business"
    FIRST = "first"

    @classmethod
    def parse(cls, value: str | Cabin | None) -> Cabin:
        """Resolve loosely spelled cabin names, defaulting to economy when unknown."""

        if isinstance(value, Cabin):
            return value
        normalized = (value or "").strip().lower().replace("-", "_").replace(" ", "_")
        if normalized == "premiumeconomy":
            normalized = cls.PREMIUM_ECONOMY.value
        for cabin in cls:
            if cabin.value == normalized:
                return cabin
        logger.warning("Unknown cabin %r, falling back to economy field mapping", value)
        return cls.ECONOMY

    @property
    def travel_class(self) -> str:
        """Travel class code used by the Amadeus flight offers search."""

        return self.value.upper()


@dataclass(frozen=True)
class CabinFields:
    """Raw seats.aero attribute names for one cabin."""

    available: str
    cost: str
    taxes: str
    direct: str
    airlines: str
    direct_airlines: str
    remaining_seats: str
    currency: str = "TaxesCurrency"


def _fields_for_prefix(prefix: str) -> CabinFields:
    return CabinFields(
        available=f"{prefix}Available",
        cost=f"{prefix}MileageCostRaw",
        taxes=f"{prefix}TotalTaxesRaw",
        direct=f"{prefix}Direct",
        airlines=f"{prefix}Airlines",
        direct_airlines=f"{prefix}DirectAirlines",
        remaining_seats=f"{prefix}RemainingSeats",
    )


CABIN_FIELDS: dict[Cabin, CabinFields] = {
    Cabin.ECONOMY: _fields_for_prefix("Y"),
    Cabin.PREMIUM_ECONOMY: _fields_for_prefix("W"),
    Cabin.BUSINESS: _fields_for_prefix("J"),
    Cabin.FIRST: _fields_for_prefix("F"),
}


def cabin_fields(cabin: str | Cabin | None) -> CabinFields:
    """Return the award field mapping for ``cabin`` (economy for unknown cabins)."""

    return CABIN_FIELDS[Cabin.parse(cabin)]


__all__ = ["CABIN_FIELDS", "Cabin", "CabinFields", "cabin_fields"]
