"""Canonical offer and recommendation records shared by every service."""

from __future__ import annotations

from datetime import date
from typing import Literal

from pydantic import BaseModel, Field, NonNegativeFloat, NonNegativeInt

from shared.cabins import Cabin

NOT_AVAILABLE = "N/A"
NO_MATCH_MESSAGE = "no offers matched preferences"

TripType = Literal["one-way", "round"]
PaymentType = Literal["points", "cash"]


class Offer(BaseModel):
    """One itinerary priced by points, by cash, or by both once matched.

    Award normalization fills points, taxes, seats and program; cash
    normalization fills cash price, flight number and times. Matching copies
    cash fields onto the award record, valuation sets the party-wide
    ``points_used``, the final ``taxes_fees`` and ``cpp``.
    """

    origin: str
    destination: str
    airline: str
    cabin: Cabin
    nonstop: bool
    departure_date: date
    departure_time: str = NOT_AVAILABLE
    arrival_time: str = NOT_AVAILABLE
    return_date: date | None = None
    return_departure_time: str | None = None
    return_arrival_time: str | None = None
    points_used: NonNegativeInt = 0
    cash_price: NonNegativeFloat | None = None
    cash_price_synthesized: bool = False
    taxes_fees: NonNegativeFloat = 0.0
    seats_available: NonNegativeInt = 0
    program: str = ""
    flight_number: str | None = None
    availability_id: str | None = None
    cpp: NonNegativeFloat = 0.0

    @property
    def is_matched(self) -> bool:
        return self.points_used > 0 and self.cash_price is not None


class Recommendation(BaseModel):
    """Traveler-facing booking option."""

    airline: str
    cabin: Cabin
    payment_type: PaymentType
    points_used: NonNegativeInt = 0
    cash_price: float | None = None
    taxes_fees: float = 0.0
    cpp: float = 0.0
    nonstop: bool
    departure_date: date
    departure_time: str = NOT_AVAILABLE
    arrival_time: str = NOT_AVAILABLE
    return_date: date | None = None
    return_departure_time: str | None = None
    return_arrival_time: str | None = None
    transfer_from: str | None = None
    program: str | None = None
    flight_number: str | None = None


class NoMatch(BaseModel):
    """Sentinel entry returned when every branch succeeded but nothing qualified."""

    error: str = Field(default=NO_MATCH_MESSAGE)


__all__ = [
    "NOT_AVAILABLE",
    "NO_MATCH_MESSAGE",
    "NoMatch",
    "Offer",
    "PaymentType",
    "Recommendation",
    "TripType",
]
