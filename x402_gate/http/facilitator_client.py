"""Async HTTP facilitator client for the x402 protocol."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

import httpx

from ..schemas import (
    PaymentPayload,
    PaymentRequirements,
    SettleResponse,
    SupportedResponse,
    VerifyResponse,
)
from .constants import DEFAULT_FACILITATOR_URL

logger = logging.getLogger(__name__)


# ============================================================================
# Auth Provider Protocol
# ============================================================================


@dataclass
class AuthHeaders:
    """Authentication headers for facilitator endpoints."""

    verify: dict[str, str] = field(default_factory=dict)
    settle: dict[str, str] = field(default_factory=dict)
    supported: dict[str, str] = field(default_factory=dict)


class AuthProvider(Protocol):
    """Generates authentication headers for facilitator requests."""

    def get_auth_headers(self) -> AuthHeaders: ...


class CreateHeadersAuthProvider:
    """AuthProvider that wraps a create_headers callable.

    The callable returns {"verify": {...}, "settle": {...}, "supported": {...}}.
    """

    def __init__(self, create_headers: Callable[[], dict[str, dict[str, str]]]) -> None:
        self._create_headers = create_headers

    def get_auth_headers(self) -> AuthHeaders:
        result = self._create_headers()
        return AuthHeaders(
            verify=result.get("verify", {}),
            settle=result.get("settle", {}),
            supported=result.get("supported", result.get("list", {})),
        )


# ============================================================================
# Configuration
# ============================================================================


@dataclass
class FacilitatorConfig:
    """Configuration for HTTP facilitator client."""

    url: str = DEFAULT_FACILITATOR_URL
    timeout: float = 30.0
    http_client: Any = None  # Optional httpx.AsyncClient
    auth_provider: AuthProvider | None = None
    identifier: str | None = None


# ============================================================================
# HTTP Facilitator Client
# ============================================================================


class HTTPFacilitatorClient:
    """Talks to a remote x402 facilitator over HTTP.

    Usable as an async context manager; closes the underlying
    ``httpx.AsyncClient`` on exit if it created it.
    """

    def __init__(self, config: FacilitatorConfig | dict[str, Any] | None = None) -> None:
        """Create HTTP facilitator client.

        Args:
            config: FacilitatorConfig, a dict with 'url' and optional
                'create_headers', or None for the public facilitator.
        """
        if isinstance(config, dict):
            create_headers = config.get("create_headers")
            config = FacilitatorConfig(
                url=config.get("url", DEFAULT_FACILITATOR_URL),
                timeout=config.get("timeout", 30.0),
                auth_provider=(
                    CreateHeadersAuthProvider(create_headers) if create_headers else None
                ),
            )
        else:
            config = config or FacilitatorConfig()

        self._url = config.url.rstrip("/")
        self._timeout = config.timeout
        self._auth_provider = config.auth_provider
        self._identifier = config.identifier or self._url
        self._http_client = config.http_client
        self._owns_client = config.http_client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)
        return self._http_client

    async def aclose(self) -> None:
        """Close HTTP client if we own it."""
        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self) -> HTTPFacilitatorClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    @property
    def url(self) -> str:
        return self._url

    @property
    def identifier(self) -> str:
        return self._identifier

    # =========================================================================
    # FacilitatorClient Implementation
    # =========================================================================

    async def verify(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
    ) -> VerifyResponse:
        """Verify a payment with the facilitator.

        Raises:
            httpx.HTTPError: If the request fails.
            ValueError: If the facilitator answers with a non-200 status.
        """
        data = await self._request("POST", "verify", self._payment_body(payload, requirements))
        return VerifyResponse.model_validate(data)

    async def settle(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
    ) -> SettleResponse:
        """Settle a payment with the facilitator.

        Raises:
            httpx.HTTPError: If the request fails.
            ValueError: If the facilitator answers with a non-200 status.
        """
        data = await self._request("POST", "settle", self._payment_body(payload, requirements))
        return SettleResponse.model_validate(data)

    async def get_supported(self) -> SupportedResponse:
        """Get supported payment kinds and extensions."""
        return SupportedResponse.model_validate(await self._request("GET", "supported"))

    # =========================================================================
    # Internal HTTP Methods
    # =========================================================================

    def _headers(self, endpoint: str) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._auth_provider:
            headers.update(getattr(self._auth_provider.get_auth_headers(), endpoint))
        return headers

    async def _request(self, method: str, endpoint: str, body: Any = None) -> Any:
        response = await self._get_client().request(
            method,
            f"{self._url}/{endpoint}",
            headers=self._headers(endpoint),
            json=body,
        )

        if response.status_code != 200:
            logger.warning(
                "Facilitator %s at %s returned %d", endpoint, self._url, response.status_code
            )
            raise ValueError(
                f"Facilitator {endpoint} failed ({response.status_code}): {response.text}"
            )

        return response.json()

    @staticmethod
    def _payment_body(payload: PaymentPayload, requirements: PaymentRequirements) -> dict[str, Any]:
        return {
            "x402Version": payload.x402_version,
            "paymentPayload": _json_safe(
                payload.model_dump(by_alias=True, exclude_none=True, mode="json")
            ),
            "paymentRequirements": _json_safe(
                requirements.model_dump(by_alias=True, exclude_none=True, mode="json")
            ),
        }


def _json_safe(value: Any) -> Any:
    """Stringify ints beyond 2**53, which JSON number parsers may round."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and abs(value) > 2**53:
        return str(value)
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_json_safe(v) for v in value]
    return value
