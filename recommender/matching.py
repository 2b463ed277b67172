"""Attach cash prices to award legs and pair outbound with return legs."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from enum import Enum

from pydantic import BaseModel

from award_search.service import AwardSearchResult
from shared.models import NOT_AVAILABLE, Offer

logger = logging.getLogger(__name__)

# Award taxes are treated as this share of the fare when a price is synthesized.
SYNTHESIZED_TAX_SHARE = 0.1


class MissingCashPolicy(str, Enum):
    """What to do with an award leg that has no cash fare on the same flight."""

    DROP = "drop"
    SYNTHESIZE = "synthesize"


class MatchedLeg(BaseModel):
    """A priced outbound award leg and, for round trips, its priced return leg."""

    outbound: Offer
    inbound: Offer | None = None


def find_cash_match(
    award: Offer,
    cash_offers: Sequence[Offer],
    *,
    on_return: bool = False,
) -> Offer | None:
    """Return the first cash offer flying the same airline, cabin, stops and date.

    Return-leg awards are compared against the cash itinerary's return date.
    """

    for cash in cash_offers:
        if cash.airline != award.airline or cash.cabin != award.cabin:
            continue
        if cash.nonstop != award.nonstop:
            continue
        travel_date = cash.return_date if on_return else cash.departure_date
        if travel_date == award.departure_date:
            return cash
    return None


def price_award_leg(
    award: Offer,
    cash_offers: Sequence[Offer],
    *,
    policy: MissingCashPolicy = MissingCashPolicy.DROP,
    on_return: bool = False,
) -> Offer | None:
    """Copy the matching cash fare onto ``award``; None when the leg is dropped."""

    cash = find_cash_match(award, cash_offers, on_return=on_return)
    if cash is not None:
        if on_return:
            return award.model_copy(
                update={
                    "cash_price": cash.cash_price,
                    "departure_time": cash.return_departure_time or NOT_AVAILABLE,
                    "arrival_time": cash.return_arrival_time or NOT_AVAILABLE,
                }
            )
        return award.model_copy(
            update={
                "cash_price": cash.cash_price,
                "departure_time": cash.departure_time,
                "arrival_time": cash.arrival_time,
                "flight_number": cash.flight_number,
                "return_date": cash.return_date,
                "return_departure_time": cash.return_departure_time,
                "return_arrival_time": cash.return_arrival_time,
            }
        )

    placeholder = {
        "cash_price": None,
        "departure_time": NOT_AVAILABLE,
        "arrival_time": NOT_AVAILABLE,
    }
    if policy is MissingCashPolicy.SYNTHESIZE and award.taxes_fees > 0:
        placeholder["cash_price"] = award.taxes_fees / SYNTHESIZED_TAX_SHARE
        placeholder["cash_price_synthesized"] = True
        return award.model_copy(update=placeholder)

    logger.debug(
        "Dropping %s award %s %s on %s without a cash fare",
        award.program,
        award.airline,
        award.cabin.value,
        award.departure_date,
    )
    return None


def pair_round_trip(outbound_legs: Sequence[Offer], return_legs: Sequence[Offer]) -> list[MatchedLeg]:
    """Join each outbound leg with the first return leg of the same airline, program and cabin."""

    pairs: list[MatchedLeg] = []
    for outbound in outbound_legs:
        inbound = next(
            (
                leg
                for leg in return_legs
                if leg.airline == outbound.airline
                and leg.program == outbound.program
                and leg.cabin == outbound.cabin
            ),
            None,
        )
        if inbound is None:
            logger.debug(
                "No %s %s return leg for %s, dropping round trip",
                outbound.program,
                outbound.airline,
                outbound.cabin.value,
            )
            continue
        pairs.append(MatchedLeg(outbound=outbound, inbound=inbound))
    return pairs


def match_offers(
    award_result: AwardSearchResult,
    cash_offers: Sequence[Offer],
    *,
    round_trip: bool,
    policy: MissingCashPolicy = MissingCashPolicy.DROP,
) -> list[MatchedLeg]:
    outbound_legs = _price_all(award_result.outbound_offers, cash_offers, policy, on_return=False)
    if not round_trip:
        return [MatchedLeg(outbound=leg) for leg in outbound_legs]

    return_legs = _price_all(award_result.return_offers, cash_offers, policy, on_return=True)
    return pair_round_trip(outbound_legs, return_legs)


def _price_all(
    awards: Sequence[Offer],
    cash_offers: Sequence[Offer],
    policy: MissingCashPolicy,
    *,
    on_return: bool,
) -> list[Offer]:
    priced: list[Offer] = []
    for award in awards:
        leg = price_award_leg(award, cash_offers, policy=policy, on_return=on_return)
        if leg is not None:
            priced.append(leg)
    return priced


__all__ = [
    "MatchedLeg",
    "MissingCashPolicy",
    "SYNTHESIZED_TAX_SHARE",
    "find_cash_match",
    "match_offers",
    "pair_round_trip",
    "price_award_leg",
]
