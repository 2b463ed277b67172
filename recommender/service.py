"""Recommendation service joining award inventory with cash fares."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeInt,
    PositiveInt,
    field_validator,
    model_validator,
)

from award_search.service import AwardSearchResult, AwardSearchService
from cash_search.auth import AuthenticationError, TokenCache
from cash_search.service import CashQuery, CashSearchService
from recommender.matching import MissingCashPolicy, match_offers
from recommender.ranking import (
    TimePreference,
    TransferHints,
    apply_preferences,
    build_recommendations,
    eligible_balance,
)
from recommender.valuation import value_offer
from shared.cabins import Cabin
from shared.models import NoMatch, Offer, Recommendation, TripType

logger = logging.getLogger(__name__)

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class PartySize(BaseModel):
    """Travelers sharing the booking."""

    adults: PositiveInt = 1
    children: NonNegativeInt = 0

    @field_validator("children", mode="before")
    @classmethod
    def count_children(cls, value: Any) -> Any:
        # Intake forms send one entry per child (usually their ages).
        if isinstance(value, list):
            return len(value)
        return value

    @property
    def total(self) -> int:
        return self.adults + self.children


class RecommendationRequest(BaseModel):
    """Input contract for the recommendation Lambda."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str | None = Field(default=None, alias="userId")
    party_size: PartySize = Field(default_factory=PartySize, alias="partySize")
    origin: str = Field(..., min_length=3, max_length=3)
    destination: str = Field(..., min_length=3, max_length=3)
    departure_date: date = Field(..., alias="departureDate")
    return_date: date | None = Field(default=None, alias="returnDate")
    trip_type: TripType = Field(default="one-way", alias="tripType")
    preferred_cabins: list[str] = Field(..., min_length=1, alias="preferredCabins")
    nonstop: bool = False
    arrival_departure_preference: TimePreference = Field(
        default="flexible", alias="arrivalDeparturePreference"
    )
    points_balance: dict[str, NonNegativeInt] = Field(default_factory=dict, alias="pointsBalance")

    @field_validator("origin", "destination")
    @classmethod
    def validate_iata(cls, value: str) -> str:
        if not value.isalpha():
            raise ValueError("must be a 3-letter IATA code")
        return value.upper()

    @field_validator("departure_date", "return_date", mode="before")
    @classmethod
    def validate_date_format(cls, value: Any) -> Any:
        if isinstance(value, str) and not _ISO_DATE.match(value):
            raise ValueError("dates must use the YYYY-MM-DD format")
        return value

    @field_validator("arrival_departure_preference", mode="before")
    @classmethod
    def normalise_time_preference(cls, value: Any) -> Any:
        if value == "morning_departure":
            return "morning"
        return value

    @model_validator(mode="after")
    def validate_return(self) -> RecommendationRequest:
        if self.trip_type == "round" and self.return_date is None:
            raise ValueError("returnDate is required for round trips")
        if self.return_date and self.return_date < self.departure_date:
            raise ValueError("returnDate cannot be before departureDate")
        return self

    @property
    def round_trip(self) -> bool:
        return self.trip_type == "round"

    @property
    def cabins(self) -> list[Cabin]:
        resolved: list[Cabin] = []
        for raw in self.preferred_cabins:
            cabin = Cabin.parse(raw)
            if cabin not in resolved:
                resolved.append(cabin)
        return resolved


class SourceSnapshot(BaseModel):
    """Normalized upstream data kept for debugging a recommendation."""

    cash_offers: list[Offer] = Field(default_factory=list)
    award_results: dict[str, AwardSearchResult] = Field(default_factory=dict)


class RecommendationResponse(BaseModel):
    """Structured response returned by the service."""

    recommendations: list[Recommendation | NoMatch]
    sources: SourceSnapshot | None = None


class CabinBranch(BaseModel):
    """Everything both upstreams returned for one cabin."""

    cabin: Cabin
    award: AwardSearchResult = Field(default_factory=AwardSearchResult)
    cash_offers: list[Offer] = Field(default_factory=list)


class RecommendationService:
    """Fans out per-cabin award and cash lookups, then matches, values and ranks."""

    def __init__(
        self,
        award_service: AwardSearchService,
        cash_service: CashSearchService,
        tokens: TokenCache,
        *,
        missing_cash_policy: MissingCashPolicy = MissingCashPolicy.DROP,
        tax_cap_fraction: float | None = 0.1,
        max_recommendations: int = 5,
        apply_preference_filter: bool = True,
        points_sources: Sequence[str] = ("Amex", "Chase"),
        transfer_hints: TransferHints | None = None,
        max_workers: int = 8,
    ) -> None:
        self._award_service = award_service
        self._cash_service = cash_service
        self._tokens = tokens
        self._missing_cash_policy = missing_cash_policy
        self._tax_cap_fraction = tax_cap_fraction
        self._max_recommendations = max_recommendations
        self._apply_preference_filter = apply_preference_filter
        self._points_sources = tuple(points_sources)
        self._transfer_hints = transfer_hints or TransferHints()
        self._max_workers = max_workers

    def recommend(
        self,
        request: RecommendationRequest,
        *,
        include_sources: bool = False,
    ) -> RecommendationResponse:
        logger.info(
            "Recommendation request: user=%s %s-%s %s dep=%s ret=%s party=%d cabins=%s nonstop=%s window=%s",
            request.user_id,
            request.origin,
            request.destination,
            request.trip_type,
            request.departure_date,
            request.return_date,
            request.party_size.total,
            [cabin.value for cabin in request.cabins],
            request.nonstop,
            request.arrival_departure_preference,
        )
        self._require_token()
        branches = self._fan_out(request, request.cabins)

        valued: list[Offer] = []
        cash_offers: list[Offer] = []
        for branch in branches:
            valued.extend(self._value_branch(request, branch))
            cash_offers.extend(branch.cash_offers)
        logger.info("Valued %d award offers against %d cash offers", len(valued), len(cash_offers))

        if self._apply_preference_filter:
            valued = apply_preferences(
                valued,
                nonstop=request.nonstop,
                time_preference=request.arrival_departure_preference,
            )

        balance = eligible_balance(request.points_balance, self._points_sources)
        recommendations = build_recommendations(
            valued,
            cash_offers,
            balance=balance,
            nonstop=request.nonstop,
            limit=self._max_recommendations,
            hints=self._transfer_hints,
        )
        logger.info("Returning %d recommendation(s)", len(recommendations))

        sources = None
        if include_sources:
            sources = SourceSnapshot(
                cash_offers=cash_offers,
                award_results={branch.cabin.value: branch.award for branch in branches},
            )
        return RecommendationResponse(recommendations=recommendations, sources=sources)

    def list_cabin_offers(self, request: RecommendationRequest, cabin: Cabin) -> list[Offer]:
        """Valued award offers for one cabin, unfiltered by balance or preferences."""

        self._require_token()
        (branch,) = self._fan_out(request, [cabin])
        return self._value_branch(request, branch)

    def list_cash_offers(self, request: RecommendationRequest) -> list[Offer]:
        """Normalized cash fares for every requested cabin."""

        self._require_token()
        branches = self._fan_out(request, request.cabins, include_awards=False)
        return [offer for branch in branches for offer in branch.cash_offers]

    def _require_token(self) -> None:
        try:
            self._tokens.get()
        except AuthenticationError as exc:
            logger.error("Cannot authenticate with the cash fare source: %s", exc)
            raise

    def _fan_out(
        self,
        request: RecommendationRequest,
        cabins: Sequence[Cabin],
        *,
        include_awards: bool = True,
    ) -> list[CabinBranch]:
        """Query both upstreams for every cabin concurrently and wait for all of them."""

        with ThreadPoolExecutor(max_workers=self._max_workers) as executor:
            cash_futures = {
                cabin: executor.submit(self._cash_service.search, self._cash_query(request, cabin))
                for cabin in cabins
            }
            award_futures = {}
            if include_awards:
                award_futures = {
                    cabin: executor.submit(
                        self._award_service.search,
                        request.origin,
                        request.destination,
                        request.departure_date,
                        cabin,
                        request.nonstop,
                        request.return_date if request.round_trip else None,
                    )
                    for cabin in cabins
                }
            branches: list[CabinBranch] = []
            for cabin in cabins:
                award = award_futures[cabin].result() if cabin in award_futures else AwardSearchResult()
                branches.append(
                    CabinBranch(cabin=cabin, award=award, cash_offers=cash_futures[cabin].result())
                )
        return branches

    def _cash_query(self, request: RecommendationRequest, cabin: Cabin) -> CashQuery:
        return CashQuery(
            origin=request.origin,
            destination=request.destination,
            departure_date=request.departure_date,
            return_date=request.return_date if request.round_trip else None,
            adults=request.party_size.adults,
            children=request.party_size.children,
            cabin=cabin,
            nonstop=request.nonstop,
            trip_type=request.trip_type,
        )

    def _value_branch(self, request: RecommendationRequest, branch: CabinBranch) -> list[Offer]:
        legs = match_offers(
            branch.award,
            branch.cash_offers,
            round_trip=request.round_trip,
            policy=self._missing_cash_policy,
        )
        return [
            value_offer(
                leg,
                party_size=request.party_size.total,
                round_trip=request.round_trip,
                tax_cap_fraction=self._tax_cap_fraction,
            )
            for leg in legs
        ]


__all__ = [
    "CabinBranch",
    "PartySize",
    "RecommendationRequest",
    "RecommendationResponse",
    "RecommendationService",
    "SourceSnapshot",
]
