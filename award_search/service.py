"""Award inventory search against the seats.aero partner API."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

import httpx
from pydantic import BaseModel, Field, ValidationError

from shared.cabins import Cabin, cabin_fields
from shared.flight_utils import coerce_int, taxes_to_usd
from shared.models import Offer

logger = logging.getLogger(__name__)


class AwardSearchError(RuntimeError):
    """Raised when seats.aero requests fail."""


class AwardQuery(BaseModel):
    """One directional award availability lookup."""

    origin: str = Field(..., min_length=3, max_length=3)
    destination: str = Field(..., min_length=3, max_length=3)
    departure_date: date
    cabin: Cabin = Cabin.ECONOMY
    nonstop: bool = False

    def reversed(self, return_date: date) -> AwardQuery:
        return self.model_copy(
            update={
                "origin": self.destination,
                "destination": self.origin,
                "departure_date": return_date,
            }
        )


class AwardSearchResult(BaseModel):
    """Outbound offers plus the return-leg candidate pool for one cabin."""

    outbound_offers: list[Offer] = Field(default_factory=list)
    return_offers: list[Offer] = Field(default_factory=list)


class SeatsAeroClient:
    """Thin HTTP client for the seats.aero cached search endpoint."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        take: int = 10,
        timeout: float = 20.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._take = take
        self._timeout = timeout
        self._transport = transport

    def search(self, query: AwardQuery) -> list[dict[str, Any]]:
        params = {
            "origin_airport": query.origin,
            "destination_airport": query.destination,
            "start_date": query.departure_date.isoformat(),
            "end_date": query.departure_date.isoformat(),
            "only_direct_flights": query.nonstop,
            "order_by": "lowest_mileage",
            "include_trips": True,
            "take": self._take,
        }
        headers = {"Partner-Authorization": self._api_key}
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.get(f"{self._base_url}/search", params=params, headers=headers)
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPStatusError as exc:
            raise AwardSearchError(
                f"seats.aero search failed with status {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise AwardSearchError("seats.aero search failed") from exc
        except ValueError as exc:
            raise AwardSearchError("seats.aero returned a non-JSON body") from exc

        records = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(records, list):
            raise AwardSearchError("seats.aero payload has no data list")
        return [record for record in records if isinstance(record, dict)]


def normalize_award_records(
    records: list[dict[str, Any]],
    query: AwardQuery,
    *,
    cad_to_usd: float,
) -> list[Offer]:
    """Map raw seats.aero availability rows for ``query.cabin`` into offers.

    Only rows with seats in the cabin whose direct flag is exactly the
    requested ``nonstop`` flag survive; a nonstop row never satisfies a
    connecting request and vice versa.
    """

    fields = cabin_fields(query.cabin)
    offers: list[Offer] = []
    for record in records:
        if not record.get(fields.available):
            continue
        if bool(record.get(fields.direct)) != query.nonstop:
            continue
        airline_field = fields.direct_airlines if query.nonstop else fields.airlines
        try:
            route = record.get("Route") or {}
            offer = Offer(
                origin=route.get("OriginAirport") or query.origin,
                destination=route.get("DestinationAirport") or query.destination,
                airline=str(record.get(airline_field) or ""),
                cabin=query.cabin,
                nonstop=bool(record.get(fields.direct)),
                departure_date=record.get("Date") or query.departure_date,
                points_used=coerce_int(record.get(fields.cost)),
                taxes_fees=taxes_to_usd(
                    record.get(fields.taxes),
                    record.get(fields.currency),
                    cad_to_usd=cad_to_usd,
                ),
                seats_available=coerce_int(record.get(fields.remaining_seats)),
                program=str(record.get("Source") or ""),
                availability_id=str(record["ID"]) if record.get("ID") is not None else None,
            )
        except (AttributeError, TypeError, ValueError, ValidationError) as exc:
            logger.debug("Skipping malformed award record %s: %s", record.get("ID"), exc)
            continue
        if offer.points_used <= 0:
            logger.debug("Skipping award record %s without a mileage cost", record.get("ID"))
            continue
        offers.append(offer)
    return offers


class AwardSearchService:
    """Runs the outbound and return award lookups for one cabin."""

    def __init__(self, client: SeatsAeroClient, *, cad_to_usd: float = 0.73) -> None:
        self._client = client
        self._cad_to_usd = cad_to_usd

    def search(
        self,
        origin: str,
        destination: str,
        departure_date: date,
        cabin: Cabin,
        nonstop: bool,
        return_date: date | None = None,
    ) -> AwardSearchResult:
        outbound_query = AwardQuery(
            origin=origin,
            destination=destination,
            departure_date=departure_date,
            cabin=cabin,
            nonstop=nonstop,
        )
        outbound = self.fetch(outbound_query)
        returns: list[Offer] = []
        if return_date:
            returns = self.fetch(outbound_query.reversed(return_date))
        return AwardSearchResult(outbound_offers=outbound, return_offers=returns)

    def fetch(self, query: AwardQuery) -> list[Offer]:
        """Return normalized offers for one direction, or nothing if seats.aero fails."""

        try:
            records = self._client.search(query)
        except AwardSearchError as exc:
            logger.warning(
                "Award search failed for %s-%s on %s: %s",
                query.origin,
                query.destination,
                query.departure_date,
                exc,
            )
            return []
        offers = normalize_award_records(records, query, cad_to_usd=self._cad_to_usd)
        logger.info(
            "seats.aero %s-%s on %s in %s (nonstop=%s): %d records, %d offers",
            query.origin,
            query.destination,
            query.departure_date,
            query.cabin.value,
            query.nonstop,
            len(records),
            len(offers),
        )
        return offers


__all__ = [
    "AwardQuery",
    "AwardSearchError",
    "AwardSearchResult",
    "AwardSearchService",
    "SeatsAeroClient",
    "normalize_award_records",
]
