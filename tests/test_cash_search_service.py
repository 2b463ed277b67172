from __future__ import annotations

from datetime import date
from typing import Any

import httpx
import pytest

from cash_search.auth import AuthenticationError, TokenCache, TokenGrant
from cash_search.service import (
    AmadeusClient,
    CashQuery,
    CashSearchService,
    normalize_cash_offers,
)
from shared.cabins import Cabin


def _segment(
    carrier: str,
    number: str,
    departure: str,
    arrival: str,
    *,
    operating: str | None = None,
) -> dict[str, Any]:
    segment: dict[str, Any] = {
        "carrierCode": carrier,
        "number": number,
        "departure": {"at": departure},
        "arrival": {"at": arrival},
    }
    if operating:
        segment["operating"] = {"carrierCode": operating}
    return segment


def _offer(
    carrier: str = "BA",
    total: str = "650.00",
    *,
    outbound: list[dict[str, Any]] | None = None,
    inbound: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    itineraries = [
        {
            "segments": outbound
            or [_segment(carrier, "117", "2026-03-01T18:30:00", "2026-03-02T06:40:00")]
        }
    ]
    if inbound is not None:
        itineraries.append({"segments": inbound})
    return {"id": "1", "itineraries": itineraries, "price": {"currency": "USD", "total": total}}


def _query(**overrides: Any) -> CashQuery:
    values: dict[str, Any] = {
        "origin": "JFK",
        "destination": "LHR",
        "departure_date": date(2026, 3, 1),
        "cabin": Cabin.ECONOMY,
    }
    values.update(overrides)
    return CashQuery(**values)


def _tokens() -> TokenCache:
    return TokenCache(lambda: TokenGrant(token="token", expires_in_seconds=1800))


def _service(handler, tokens: TokenCache | None = None, **kwargs: Any) -> CashSearchService:
    client = AmadeusClient(
        base_url="https://amadeus.example.com",
        transport=httpx.MockTransport(handler),
    )
    return CashSearchService(client, tokens or _tokens(), **kwargs)


def test_normalize_extracts_first_segment_details() -> None:
    payload = {
        "data": [
            _offer(
                outbound=[
                    _segment("AA", "100", "2026-03-01T08:05:00", "2026-03-01T11:00:00", operating="BA"),
                    _segment("BA", "200", "2026-03-01T13:00:00", "2026-03-02T01:00:00"),
                ],
                total="812.40",
            )
        ]
    }

    offers = normalize_cash_offers(payload, _query())

    offer = offers[0]
    assert offer.airline == "AA"
    assert offer.flight_number == "BA100"
    assert offer.cash_price == pytest.approx(812.40)
    assert offer.nonstop is False
    assert offer.departure_date == date(2026, 3, 1)
    assert offer.departure_time == "08:05"
    assert offer.arrival_time == "11:00"
    assert offer.points_used == 0
    assert offer.taxes_fees == 0.0
    assert offer.return_date is None


def test_normalize_reads_return_itinerary_for_round_trips() -> None:
    payload = {
        "data": [
            _offer(inbound=[_segment("BA", "112", "2026-03-10T09:15:00", "2026-03-10T12:10:00")])
        ]
    }
    query = _query(trip_type="round", return_date=date(2026, 3, 10))

    offer = normalize_cash_offers(payload, query)[0]

    assert offer.return_date == date(2026, 3, 10)
    assert offer.return_departure_time == "09:15"
    assert offer.return_arrival_time == "12:10"


def test_normalize_skips_malformed_offers() -> None:
    payload = {"data": [{"id": "broken"}, _offer()]}

    assert len(normalize_cash_offers(payload, _query())) == 1


def test_normalize_skips_offers_with_non_mapping_operating_carrier() -> None:
    bad = _offer()
    bad["itineraries"][0]["segments"][0]["operating"] = "AA"

    offers = normalize_cash_offers({"data": [bad, _offer("VS")]}, _query())

    assert [offer.airline for offer in offers] == ["VS"]


def test_client_sends_bearer_token_and_travel_class() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"data": [_offer()]})

    query = _query(
        cabin=Cabin.PREMIUM_ECONOMY,
        trip_type="round",
        return_date=date(2026, 3, 10),
        children=2,
    )
    _service(handler).search(query)

    params = seen[0].url.params
    assert seen[0].headers["Authorization"] == "Bearer token"
    assert params["travelClass"] == "PREMIUM_ECONOMY"
    assert params["returnDate"] == "2026-03-10"
    assert params["children"] == "2"
    assert params["currencyCode"] == "USD"
    assert params["nonStop"] == "false"


def test_nonstop_query_retries_with_connections_when_empty() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.params["nonStop"] == "true":
            return httpx.Response(200, json={"data": []})
        return httpx.Response(
            200,
            json={
                "data": [
                    _offer(
                        outbound=[
                            _segment("BA", "1", "2026-03-01T07:00:00", "2026-03-01T09:00:00"),
                            _segment("BA", "2", "2026-03-01T10:00:00", "2026-03-01T20:00:00"),
                        ]
                    )
                ]
            },
        )

    offers = _service(handler).search(_query(nonstop=True))

    assert [request.url.params["nonStop"] for request in seen] == ["true", "false"]
    assert len(offers) == 1
    assert offers[0].nonstop is False


def test_retry_with_connections_can_be_disabled() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"data": []})

    offers = _service(handler, retry_with_connections=False).search(_query(nonstop=True))

    assert offers == []
    assert len(seen) == 1


def test_round_trip_falls_back_to_same_airline_one_way_pairs() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        params = request.url.params
        if "returnDate" in params:
            return httpx.Response(200, json={"data": []})
        if params["originLocationCode"] == "JFK":
            return httpx.Response(
                200,
                json={"data": [_offer("BA", "400.00"), _offer("VS", "350.00")]},
            )
        return httpx.Response(
            200,
            json={
                "data": [
                    _offer(
                        "BA",
                        "300.00",
                        outbound=[_segment("BA", "112", "2026-03-10T09:15:00", "2026-03-10T12:10:00")],
                    ),
                    _offer(
                        "AA",
                        "200.00",
                        outbound=[_segment("AA", "101", "2026-03-10T10:00:00", "2026-03-10T13:00:00")],
                    ),
                ]
            },
        )

    query = _query(trip_type="round", return_date=date(2026, 3, 10))
    offers = _service(handler).search(query)

    assert len(offers) == 1
    combined = offers[0]
    assert combined.airline == "BA"
    assert combined.cash_price == pytest.approx(700.0)
    assert combined.return_date == date(2026, 3, 10)
    assert combined.return_departure_time == "09:15"
    assert combined.departure_time == "18:30"


def test_split_round_trip_keeps_first_successful_direction() -> None:
    one_way_outbound_calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        params = request.url.params
        if params["originLocationCode"] == "JFK" and "returnDate" not in params:
            one_way_outbound_calls.append(params["nonStop"])
        if "returnDate" in params:
            return httpx.Response(200, json={"data": []})
        if params["originLocationCode"] == "JFK":
            return httpx.Response(200, json={"data": [_offer("BA", "400.00")]})
        if params["nonStop"] == "true":
            return httpx.Response(200, json={"data": []})
        return httpx.Response(
            200,
            json={
                "data": [
                    _offer(
                        "BA",
                        "300.00",
                        outbound=[
                            _segment("BA", "112", "2026-03-10T09:15:00", "2026-03-10T11:00:00"),
                            _segment("BA", "113", "2026-03-10T12:00:00", "2026-03-10T15:10:00"),
                        ],
                    )
                ]
            },
        )

    query = _query(trip_type="round", return_date=date(2026, 3, 10), nonstop=True)
    offers = _service(handler).search(query)

    assert one_way_outbound_calls == ["true"]
    assert len(offers) == 1
    assert offers[0].cash_price == pytest.approx(700.0)
    assert offers[0].nonstop is False


def test_failed_queries_degrade_to_empty_results() -> None:
    offers = _service(lambda _request: httpx.Response(500, json={})).search(
        _query(trip_type="round", return_date=date(2026, 3, 10))
    )

    assert offers == []


def test_rejected_token_is_refreshed_once() -> None:
    grants = iter(["stale", "fresh"])
    tokens = TokenCache(lambda: TokenGrant(token=next(grants), expires_in_seconds=1800))
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.headers["Authorization"])
        if request.headers["Authorization"] == "Bearer stale":
            return httpx.Response(401, json={"errors": []})
        return httpx.Response(200, json={"data": [_offer()]})

    offers = _service(handler, tokens=tokens).search(_query())

    assert seen == ["Bearer stale", "Bearer fresh"]
    assert len(offers) == 1


def test_failed_refresh_is_not_swallowed() -> None:
    calls = {"count": 0}

    def acquire() -> TokenGrant:
        calls["count"] += 1
        if calls["count"] > 1:
            raise AuthenticationError("credentials revoked")
        return TokenGrant(token="stale", expires_in_seconds=1800)

    service = _service(lambda _request: httpx.Response(401), tokens=TokenCache(acquire))

    with pytest.raises(AuthenticationError):
        service.search(_query())
