"""Shared helpers for parsing upstream flight payloads."""

from __future__ import annotations

from typing import Any

from shared.models import NOT_AVAILABLE

USD = "USD"


def split_timestamp(value: str | None) -> tuple[str, str] | None:
    """Split an ISO timestamp into ``(YYYY-MM-DD, HH:MM)`` local parts."""

    if not value or "T" not in value:
        return None
    day, _, clock = value.partition("T")
    if len(day) != 10 or len(clock) < 5:
        return None
    return day, clock[:5]


def departure_hour(clock: str | None) -> int | None:
    """Return the hour of an ``HH:MM`` string, or None for unknown times."""

    if not clock or clock == NOT_AVAILABLE:
        return None
    hour, _, _ = clock.partition(":")
    try:
        return int(hour)
    except ValueError:
        return None


def taxes_to_usd(raw_amount: Any, currency: str | None, *, cad_to_usd: float) -> float:
    """Convert a minor-unit tax amount into US dollars.

    Amounts not quoted in USD are assumed to be CAD, which is what the award
    source reports for the partner programs it prices.
    """

    amount = float(raw_amount or 0) / 100
    if currency != USD:
        amount *= cad_to_usd
    return amount


def coerce_int(value: Any, default: int = 0) -> int:
    try:
        if value is None:
            return default
        return int(value)
    except (TypeError, ValueError):
        return default


__all__ = ["USD", "coerce_int", "departure_hour", "split_timestamp", "taxes_to_usd"]
