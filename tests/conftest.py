from __future__ import annotations

from collections.abc import Iterator

import pytest

from config.settings import get_settings


@pytest.fixture(autouse=True)
def _env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Ensure required env vars exist during tests."""

    monkeypatch.setenv("SEATS_AERO_API_KEY", "test-seats-aero-key")
    monkeypatch.setenv("AMADEUS_CLIENT_ID", "test-client-id")
    monkeypatch.setenv("AMADEUS_CLIENT_SECRET", "test-client-secret")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
