"""Cash fare search wrapping the Amadeus flight offers endpoint."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

import httpx
from pydantic import BaseModel, Field, NonNegativeInt, PositiveInt, ValidationError

from cash_search.auth import TokenCache
from shared.cabins import Cabin
from shared.flight_utils import split_timestamp
from shared.models import Offer, TripType

logger = logging.getLogger(__name__)


class CashSearchError(RuntimeError):
    """Raised when Amadeus flight offer requests fail."""


class TokenRejectedError(CashSearchError):
    """Raised when Amadeus answers 401 for the supplied bearer token."""


class CashQuery(BaseModel):
    """Input contract for one Amadeus flight offers lookup."""

    origin: str = Field(..., min_length=3, max_length=3)
    destination: str = Field(..., min_length=3, max_length=3)
    departure_date: date
    return_date: date | None = None
    adults: PositiveInt = 1
    children: NonNegativeInt = 0
    cabin: Cabin = Cabin.ECONOMY
    nonstop: bool = False
    trip_type: TripType = "one-way"

    @property
    def is_round_trip(self) -> bool:
        return self.trip_type == "round" and self.return_date is not None


class AmadeusClient:
    """Simple HTTP client for the flight offers search endpoint."""

    def __init__(
        self,
        base_url: str,
        *,
        max_results: int = 10,
        timeout: float = 20.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._max_results = max_results
        self._timeout = timeout
        self._transport = transport

    def flight_offers(self, query: CashQuery, token: str) -> dict[str, Any]:
        params: dict[str, Any] = {
            "originLocationCode": query.origin,
            "destinationLocationCode": query.destination,
            "departureDate": query.departure_date.isoformat(),
            "adults": query.adults,
            "travelClass": query.cabin.travel_class,
            "nonStop": query.nonstop,
            "currencyCode": "USD",
            "max": self._max_results,
        }
        if query.children:
            params["children"] = query.children
        if query.is_round_trip:
            params["returnDate"] = query.return_date.isoformat()

        headers = {"Authorization": f"Bearer {token}"}
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.get(
                    f"{self._base_url}/v2/shopping/flight-offers",
                    params=params,
                    headers=headers,
                )
                if response.status_code == 401:
                    raise TokenRejectedError("Amadeus rejected the bearer token")
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPStatusError as exc:
            raise CashSearchError(
                f"Amadeus flight offers failed with status {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise CashSearchError("Amadeus flight offers failed") from exc
        except ValueError as exc:
            raise CashSearchError("Amadeus returned a non-JSON body") from exc

        if not isinstance(payload, dict) or not isinstance(payload.get("data"), list):
            raise CashSearchError("Amadeus payload has no data list")
        return payload


def normalize_cash_offers(payload: dict[str, Any], query: CashQuery) -> list[Offer]:
    """Convert Amadeus flight offers into canonical cash-only offers."""

    offers: list[Offer] = []
    for item in payload.get("data", []):
        try:
            offers.append(_to_offer(item, query))
        except (AttributeError, KeyError, IndexError, TypeError, ValueError, ValidationError) as exc:
            logger.debug("Skipping malformed Amadeus offer %s: %s", _offer_id(item), exc)
    return offers


def _to_offer(item: dict[str, Any], query: CashQuery) -> Offer:
    itineraries = item["itineraries"]
    segments = itineraries[0]["segments"]
    first = segments[0]
    departure = split_timestamp(first["departure"]["at"])
    arrival = split_timestamp(first["arrival"]["at"])
    if departure is None or arrival is None:
        raise ValueError("segment timestamps are not ISO formatted")

    operating = first.get("operating") or {}
    flight_carrier = operating.get("carrierCode") or first["carrierCode"]

    fields: dict[str, Any] = {}
    if query.is_round_trip and len(itineraries) > 1:
        return_first = itineraries[1]["segments"][0]
        return_departure = split_timestamp(return_first["departure"]["at"])
        return_arrival = split_timestamp(return_first["arrival"]["at"])
        if return_departure and return_arrival:
            fields = {
                "return_date": return_departure[0],
                "return_departure_time": return_departure[1],
                "return_arrival_time": return_arrival[1],
            }

    return Offer(
        origin=query.origin,
        destination=query.destination,
        airline=first["carrierCode"],
        cabin=query.cabin,
        nonstop=len(segments) == 1,
        departure_date=departure[0],
        departure_time=departure[1],
        arrival_time=arrival[1],
        cash_price=float(item["price"]["total"]),
        program="amadeus",
        flight_number=f"{flight_carrier}{first.get('number', '')}",
        **fields,
    )


def _offer_id(item: Any) -> Any:
    return item.get("id") if isinstance(item, dict) else None


class CashSearchService:
    """Coordinates Amadeus lookups, including the widened fallback queries."""

    def __init__(
        self,
        client: AmadeusClient,
        tokens: TokenCache,
        *,
        retry_with_connections: bool = True,
        split_round_trip: bool = True,
    ) -> None:
        self._client = client
        self._tokens = tokens
        self._retry_with_connections = retry_with_connections
        self._split_round_trip = split_round_trip

    def search(self, query: CashQuery) -> list[Offer]:
        offers = self._search_attempts(query)
        if not offers and query.is_round_trip and self._split_round_trip:
            logger.info(
                "No round-trip fares for %s-%s, pricing each direction separately",
                query.origin,
                query.destination,
            )
            offers = self._search_split_round_trip(query)
        logger.info(
            "Amadeus %s-%s in %s (%s): %d offers",
            query.origin,
            query.destination,
            query.cabin.value,
            query.trip_type,
            len(offers),
        )
        return offers

    def _attempts(self, query: CashQuery) -> list[CashQuery]:
        attempts = [query]
        if query.nonstop and self._retry_with_connections:
            attempts.append(query.model_copy(update={"nonstop": False}))
        return attempts

    def _search_attempts(self, query: CashQuery) -> list[Offer]:
        for attempt in self._attempts(query):
            offers = self._fetch(attempt)
            if offers:
                return offers
        return []

    def _search_split_round_trip(self, query: CashQuery) -> list[Offer]:
        outbound_query = query.model_copy(update={"trip_type": "one-way", "return_date": None})
        return_query = outbound_query.model_copy(
            update={
                "origin": query.destination,
                "destination": query.origin,
                "departure_date": query.return_date,
            }
        )
        outbound_offers: list[Offer] = []
        return_offers: list[Offer] = []
        for outbound_attempt, return_attempt in zip(
            self._attempts(outbound_query), self._attempts(return_query)
        ):
            # A direction that already has fares keeps its first attempt's results.
            if not outbound_offers:
                outbound_offers = self._fetch(outbound_attempt)
            if not return_offers:
                return_offers = self._fetch(return_attempt)
            if outbound_offers and return_offers:
                break

        combined: list[Offer] = []
        for outbound in outbound_offers:
            for inbound in return_offers:
                if outbound.airline != inbound.airline:
                    continue
                combined.append(
                    outbound.model_copy(
                        update={
                            "cash_price": (outbound.cash_price or 0.0) + (inbound.cash_price or 0.0),
                            "nonstop": outbound.nonstop and inbound.nonstop,
                            "return_date": inbound.departure_date,
                            "return_departure_time": inbound.departure_time,
                            "return_arrival_time": inbound.arrival_time,
                        }
                    )
                )
        return combined

    def _fetch(self, query: CashQuery) -> list[Offer]:
        try:
            try:
                payload = self._client.flight_offers(query, self._tokens.get())
            except TokenRejectedError:
                logger.info("Amadeus token rejected, refreshing once")
                payload = self._client.flight_offers(query, self._tokens.refresh())
        except CashSearchError as exc:
            logger.warning(
                "Cash search failed for %s-%s on %s: %s",
                query.origin,
                query.destination,
                query.departure_date,
                exc,
            )
            return []
        return normalize_cash_offers(payload, query)


__all__ = [
    "AmadeusClient",
    "CashQuery",
    "CashSearchError",
    "CashSearchService",
    "TokenRejectedError",
    "normalize_cash_offers",
]
