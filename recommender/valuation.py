"""Cost-per-point valuation of matched offers."""

from __future__ import annotations

from recommender.matching import MatchedLeg
from shared.models import Offer


def cost_per_point(cash_price: float | None, taxes_fees: float, points_used: int) -> float:
    """Cents of cash value recovered per point, never negative."""

    if not cash_price or not points_used:
        return 0.0
    return max(0.0, (cash_price - taxes_fees) / points_used * 100)


def cap_taxes(taxes_fees: float, cash_price: float | None, fraction: float | None) -> float:
    if fraction is None or not cash_price:
        return taxes_fees
    return min(taxes_fees, cash_price * fraction)


def value_offer(
    leg: MatchedLeg,
    *,
    party_size: int,
    round_trip: bool,
    tax_cap_fraction: float | None = 0.1,
) -> Offer:
    """Build the party-wide offer for a matched leg and compute its cpp."""

    outbound = leg.outbound
    taxes_fees = outbound.taxes_fees + (leg.inbound.taxes_fees if leg.inbound else 0.0)
    if not outbound.cash_price_synthesized:
        taxes_fees = cap_taxes(taxes_fees, outbound.cash_price, tax_cap_fraction)
    points_used = party_size * outbound.points_used * (2 if round_trip else 1)

    cpp = 0.0
    if not outbound.cash_price_synthesized:
        cpp = cost_per_point(outbound.cash_price, taxes_fees, points_used)

    update = {"taxes_fees": taxes_fees, "points_used": points_used, "cpp": cpp}
    if leg.inbound is not None:
        update.update(
            {
                "return_date": leg.inbound.departure_date,
                "return_departure_time": leg.inbound.departure_time,
                "return_arrival_time": leg.inbound.arrival_time,
            }
        )
    return outbound.model_copy(update=update)


__all__ = ["cap_taxes", "cost_per_point", "value_offer"]
