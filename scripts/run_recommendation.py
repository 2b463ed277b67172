#!/usr/bin/env python3
"""Invoke the recommendation handlers locally."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from config.settings import get_settings
from recommender.handler import cabin_offers_handler, cash_offers_handler, lambda_handler

EXAMPLE_PAYLOAD: dict[str, Any] = {
    "userId": "local-user",
    "partySize": {"adults": 1, "children": 0},
    "origin": "JFK",
    "destination": "LHR",
    "departureDate": "2026-03-01",
    "returnDate": "2026-03-10",
    "tripType": "round",
    "preferredCabins": ["economy", "business"],
    "nonstop": True,
    "arrivalDeparturePreference": "flexible",
    "pointsBalance": {"Amex": 120000, "Chase": 80000},
}

MODES = ("recommend", "cabin", "cash")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run the recommendation Lambda locally with a JSON payload."
    )
    parser.add_argument(
        "payload",
        nargs="?",
        help="Path to a JSON file containing the RecommendationRequest payload.",
    )
    parser.add_argument(
        "--mode",
        choices=MODES,
        default="recommend",
        help="recommend (ranked), cabin (award offers for one cabin) or cash (cash fares).",
    )
    parser.add_argument("--cabin", help="Cabin to list in --mode cabin.")
    parser.add_argument(
        "--include-sources",
        action="store_true",
        help="Also print the normalized upstream offers.",
    )
    return parser.parse_args()


def load_payload(path: str | None) -> dict[str, Any]:
    if not path:
        return dict(EXAMPLE_PAYLOAD)
    payload_path = Path(path)
    with payload_path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def main() -> None:
    load_dotenv()
    args = parse_args()

    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    payload = load_payload(args.payload)
    if args.mode == "cabin":
        if args.cabin:
            payload["cabin"] = args.cabin
        response = cabin_offers_handler(payload, None)
    elif args.mode == "cash":
        response = cash_offers_handler(payload, None)
    else:
        payload["includeSources"] = args.include_sources
        response = lambda_handler(payload, None)
    print(json.dumps(response, indent=2))


if __name__ == "__main__":
    main()
