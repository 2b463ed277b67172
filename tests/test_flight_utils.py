from __future__ import annotations

import pytest

from shared.flight_utils import coerce_int, departure_hour, split_timestamp, taxes_to_usd


def test_split_timestamp_returns_date_and_clock() -> None:
    assert split_timestamp("2026-03-01T18:30:00") == ("2026-03-01", "18:30")


def test_split_timestamp_rejects_plain_dates() -> None:
    assert split_timestamp("2026-03-01") is None
    assert split_timestamp(None) is None


def test_departure_hour_handles_unknown_times() -> None:
    assert departure_hour("07:45") == 7
    assert departure_hour("N/A") is None
    assert departure_hour("soon") is None


def test_taxes_to_usd_reads_minor_units() -> None:
    assert taxes_to_usd(560, "USD", cad_to_usd=0.73) == pytest.approx(5.60)


def test_taxes_to_usd_converts_non_usd_amounts() -> None:
    assert taxes_to_usd(10000, "CAD", cad_to_usd=0.72) == pytest.approx(72.0)
    assert taxes_to_usd(None, "CAD", cad_to_usd=0.72) == 0.0


def test_coerce_int_defaults_on_garbage() -> None:
    assert coerce_int("42") == 42
    assert coerce_int("n/a", default=1) == 1
