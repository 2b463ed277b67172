"""Amadeus OAuth2 client-credentials tokens and their in-process cache."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

import httpx
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class AuthenticationError(RuntimeError):
    """Raised when no valid upstream bearer token can be obtained."""


class TokenGrant(BaseModel):
    """Access token plus its lifetime as returned by the token endpoint."""

    token: str
    expires_in_seconds: int = Field(1799, ge=0)


class AmadeusAuthClient:
    """Requests client-credentials tokens from Amadeus."""

    def __init__(
        self,
        base_url: str,
        client_id: str,
        client_secret: str,
        *,
        timeout: float = 20.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client_id = client_id.strip()
        self._client_secret = client_secret.strip()
        self._timeout = timeout
        self._transport = transport

    def acquire_token(self) -> TokenGrant:
        if not self._client_id or not self._client_secret:
            raise AuthenticationError(
                "Missing Amadeus credentials. Set AMADEUS_CLIENT_ID and AMADEUS_CLIENT_SECRET."
            )
        data = {
            "grant_type": "client_credentials",
            "client_id": self._client_id,
            "client_secret": self._client_secret,
        }
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.post(f"{self._base_url}/v1/security/oauth2/token", data=data)
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPStatusError as exc:
            raise AuthenticationError(
                f"Amadeus token request failed with status {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise AuthenticationError("Amadeus token request failed") from exc
        except ValueError as exc:
            raise AuthenticationError("Amadeus token response was not JSON") from exc

        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not token:
            raise AuthenticationError("Amadeus token response has no access_token")
        try:
            return TokenGrant(token=token, expires_in_seconds=int(payload.get("expires_in", 1799)))
        except (TypeError, ValueError) as exc:
            raise AuthenticationError("Amadeus token response has an invalid expires_in") from exc


class TokenCache:
    """Holds one bearer token and refreshes it shortly before it expires.

    ``acquire`` is any callable returning a :class:`TokenGrant`; ``clock``
    returns seconds and can be replaced in tests.
    """

    def __init__(
        self,
        acquire: Callable[[], TokenGrant],
        *,
        refresh_margin_seconds: int = 60,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._acquire = acquire
        self._refresh_margin = refresh_margin_seconds
        self._clock = clock
        self._token: str | None = None
        self._expires_at: float | None = None
        self._lock = threading.Lock()

    @property
    def expires_at(self) -> float | None:
        return self._expires_at

    def is_valid(self) -> bool:
        if not self._token or self._expires_at is None:
            return False
        return self._clock() < self._expires_at - self._refresh_margin

    def get(self) -> str:
        """Return a valid token, refreshing it first when needed."""

        with self._lock:
            if self.is_valid():
                return self._token  # type: ignore[return-value]
            return self._refresh_locked()

    def refresh(self) -> str:
        with self._lock:
            return self._refresh_locked()

    def invalidate(self) -> None:
        with self._lock:
            self._token = None
            self._expires_at = None

    def _refresh_locked(self) -> str:
        self._token = None
        self._expires_at = None
        grant = self._acquire()
        if not grant.token:
            raise AuthenticationError("Token provider returned an empty token")
        self._token = grant.token
        self._expires_at = self._clock() + grant.expires_in_seconds
        logger.info("Amadeus token refreshed, valid for %ss", grant.expires_in_seconds)
        return self._token


__all__ = ["AmadeusAuthClient", "AuthenticationError", "TokenCache", "TokenGrant"]
