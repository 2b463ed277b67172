"""Preference filtering, ranking and the cash fallback."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Literal

from pydantic import BaseModel, Field

from shared.flight_utils import departure_hour
from shared.models import NoMatch, Offer, Recommendation

TimePreference = Literal["flexible", "morning"]
MORNING_CUTOFF_HOUR = 12


class TransferHints(BaseModel):
    """Two-bucket rule for which points currency to transfer from."""

    primary_source: str = "Amex"
    secondary_source: str = "Chase"
    primary_programs: list[str] = Field(default_factory=lambda: ["aeroplan"])
    primary_airlines: list[str] = Field(default_factory=lambda: ["BA", "IB"])


def passes_preferences(offer: Offer, *, nonstop: bool, time_preference: TimePreference) -> bool:
    if nonstop and not offer.nonstop:
        return False
    if time_preference == "flexible":
        return True
    hour = departure_hour(offer.departure_time)
    if hour is None:
        return True
    return hour < MORNING_CUTOFF_HOUR


def apply_preferences(
    offers: Sequence[Offer],
    *,
    nonstop: bool,
    time_preference: TimePreference,
) -> list[Offer]:
    """Drop offers that break the nonstop requirement or the departure window."""

    return [
        offer
        for offer in offers
        if passes_preferences(offer, nonstop=nonstop, time_preference=time_preference)
    ]


def eligible_balance(points_balance: Mapping[str, int], sources: Sequence[str]) -> int:
    """Sum the balances held in transferable currencies.

    When none of ``sources`` appear in the balance, every supplied balance counts.
    """

    wanted = {source.lower() for source in sources}
    relevant = [amount for program, amount in points_balance.items() if program.lower() in wanted]
    if not relevant:
        return sum(points_balance.values())
    return sum(relevant)


def rank_points_offers(offers: Sequence[Offer], *, balance: int, limit: int) -> list[Offer]:
    """Affordable offers, best cpp first, at most ``limit`` of them."""

    affordable = [offer for offer in offers if offer.points_used <= balance]
    return sorted(affordable, key=lambda offer: offer.cpp, reverse=True)[:limit]


def transfer_from(offer: Offer, hints: TransferHints) -> str:
    programs = {program.lower() for program in hints.primary_programs}
    airlines = {airline.upper() for airline in hints.primary_airlines}
    if offer.program.lower() in programs or offer.airline.upper() in airlines:
        return hints.primary_source
    return hints.secondary_source


def cheapest_cash_offer(cash_offers: Sequence[Offer], *, nonstop: bool) -> Offer | None:
    candidates = [
        offer
        for offer in cash_offers
        if offer.cash_price is not None and (offer.nonstop or not nonstop)
    ]
    return min(candidates, key=lambda offer: offer.cash_price, default=None)


def to_recommendation(
    offer: Offer,
    *,
    payment_type: Literal["points", "cash"],
    transfer_source: str | None = None,
) -> Recommendation:
    return Recommendation(
        airline=offer.airline,
        cabin=offer.cabin,
        payment_type=payment_type,
        points_used=offer.points_used if payment_type == "points" else 0,
        cash_price=offer.cash_price,
        taxes_fees=offer.taxes_fees if payment_type == "points" else 0.0,
        cpp=offer.cpp if payment_type == "points" else 0.0,
        nonstop=offer.nonstop,
        departure_date=offer.departure_date,
        departure_time=offer.departure_time,
        arrival_time=offer.arrival_time,
        return_date=offer.return_date,
        return_departure_time=offer.return_departure_time,
        return_arrival_time=offer.return_arrival_time,
        transfer_from=transfer_source,
        program=offer.program or None,
        flight_number=offer.flight_number,
    )


def build_recommendations(
    valued_offers: Sequence[Offer],
    cash_offers: Sequence[Offer],
    *,
    balance: int,
    nonstop: bool,
    limit: int,
    hints: TransferHints,
) -> list[Recommendation | NoMatch]:
    """Points options first; otherwise the cheapest fare; otherwise the no-match sentinel."""

    ranked = rank_points_offers(valued_offers, balance=balance, limit=limit)
    if ranked:
        return [
            to_recommendation(offer, payment_type="points", transfer_source=transfer_from(offer, hints))
            for offer in ranked
        ]

    cheapest = cheapest_cash_offer(cash_offers, nonstop=nonstop)
    if cheapest is not None:
        return [to_recommendation(cheapest, payment_type="cash")]
    return [NoMatch()]


__all__ = [
    "MORNING_CUTOFF_HOUR",
    "TimePreference",
    "TransferHints",
    "apply_preferences",
    "build_recommendations",
    "cheapest_cash_offer",
    "eligible_balance",
    "passes_preferences",
    "rank_points_offers",
    "to_recommendation",
    "transfer_from",
]
