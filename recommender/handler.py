"""AWS Lambda-style handlers for the recommendation service."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from award_search.service import AwardSearchService, SeatsAeroClient
from cash_search.auth import AmadeusAuthClient, AuthenticationError, TokenCache
from cash_search.service import AmadeusClient, CashSearchService
from config.settings import Settings, get_settings
from recommender.matching import MissingCashPolicy
from recommender.ranking import TransferHints
from recommender.service import RecommendationRequest, RecommendationService
from shared.cabins import Cabin

logger = logging.getLogger(__name__)

_service: RecommendationService | None = None


def build_service(settings: Settings) -> RecommendationService:
    """Wire clients, the token cache and the service from settings."""

    timeout = settings.http_timeout_seconds
    auth_client = AmadeusAuthClient(
        base_url=str(settings.amadeus_base_url),
        client_id=settings.amadeus_client_id,
        client_secret=settings.amadeus_client_secret,
        timeout=timeout,
    )
    tokens = TokenCache(
        auth_client.acquire_token,
        refresh_margin_seconds=settings.token_refresh_margin_seconds,
    )
    award_service = AwardSearchService(
        SeatsAeroClient(
            base_url=str(settings.seats_aero_base_url),
            api_key=settings.seats_aero_api_key,
            take=settings.award_take,
            timeout=timeout,
        ),
        cad_to_usd=settings.cad_to_usd,
    )
    cash_service = CashSearchService(
        AmadeusClient(
            base_url=str(settings.amadeus_base_url),
            max_results=settings.cash_max_results,
            timeout=timeout,
        ),
        tokens,
        retry_with_connections=settings.cash_retry_with_connections,
        split_round_trip=settings.cash_split_round_trip,
    )
    return RecommendationService(
        award_service,
        cash_service,
        tokens,
        missing_cash_policy=MissingCashPolicy(settings.missing_cash_policy),
        tax_cap_fraction=settings.tax_cap_fraction,
        max_recommendations=settings.max_recommendations,
        apply_preference_filter=settings.apply_preference_filter,
        points_sources=settings.points_sources,
        transfer_hints=TransferHints(
            primary_programs=settings.primary_partner_programs,
            primary_airlines=settings.primary_partner_airlines,
        ),
        max_workers=settings.max_workers,
    )


def _get_service() -> RecommendationService:
    global _service
    if _service is None:
        _service = build_service(get_settings())
    return _service


def _success(data: Any) -> dict[str, Any]:
    return {"status": "success", "status_code": 200, "data": data}


def _error(status_code: int, error_type: str, message: str) -> dict[str, Any]:
    return {
        "status": "error",
        "status_code": status_code,
        "error_type": error_type,
        "message": message,
    }


def _parse(event: dict[str, Any]) -> RecommendationRequest | dict[str, Any]:
    try:
        return RecommendationRequest.model_validate(event)
    except ValidationError as exc:
        logger.error("Invalid recommendation payload: %s", exc)
        return _error(400, "validation_failed", str(exc))


def _auth_failure(exc: AuthenticationError) -> dict[str, Any]:
    return _error(401, "authentication_failed", str(exc))


def lambda_handler(event: dict[str, Any], _context: Any | None = None) -> dict[str, Any]:
    """Entry point compatible with AWS Lambda.

    ``event`` is the recommendation request; set ``includeSources`` to also
    return the normalized upstream offers.
    """

    request = _parse(event)
    if isinstance(request, dict):
        return request

    try:
        response = _get_service().recommend(
            request,
            include_sources=bool(event.get("includeSources")),
        )
    except AuthenticationError as exc:
        return _auth_failure(exc)

    payload = response.model_dump(mode="json")
    if response.sources is None:
        payload.pop("sources")
    return _success(payload)


def cabin_offers_handler(event: dict[str, Any], _context: Any | None = None) -> dict[str, Any]:
    """List valued award offers for ``event["cabin"]`` (first preferred cabin by default)."""

    request = _parse(event)
    if isinstance(request, dict):
        return request

    cabin = Cabin.parse(event.get("cabin")) if event.get("cabin") else request.cabins[0]
    try:
        offers = _get_service().list_cabin_offers(request, cabin)
    except AuthenticationError as exc:
        return _auth_failure(exc)
    return _success([offer.model_dump(mode="json") for offer in offers])


def cash_offers_handler(event: dict[str, Any], _context: Any | None = None) -> dict[str, Any]:
    """List normalized cash fares for the requested cabins."""

    request = _parse(event)
    if isinstance(request, dict):
        return request

    try:
        offers = _get_service().list_cash_offers(request)
    except AuthenticationError as exc:
        return _auth_failure(exc)
    return _success([offer.model_dump(mode="json") for offer in offers])


__all__ = [
    "build_service",
    "cabin_offers_handler",
    "cash_offers_handler",
    "lambda_handler",
]
