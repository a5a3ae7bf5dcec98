"""Types for the HTTP layer: adapters, route config and processing results."""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol, Union

from ..schemas import Network, PaymentPayload, PaymentRequirements, Price

# ============================================================================
# Framework Adapter
# ============================================================================


class HTTPAdapter(Protocol):
    """Framework-agnostic view of an incoming HTTP request."""

    def get_header(self, name: str) -> str | None:
        """Case-insensitive header lookup."""
        ...

    def get_method(self) -> str: ...

    def get_path(self) -> str: ...

    def get_url(self) -> str: ...

    def get_accept_header(self) -> str: ...

    def get_user_agent(self) -> str: ...

    def get_query_params(self) -> dict[str, str | list[str]]: ...

    def get_query_param(self, name: str) -> str | list[str] | None: ...

    def get_body(self) -> Any: ...


@dataclass(frozen=True)
class HTTPRequestContext:
    """Immutable per-request facts.

    Attributes:
        adapter: Handle back to the framework request (referenced, not copied).
        path: Request path without query string.
        method: Upper-case HTTP method.
        payment_header: Selected payment credential, if any.
    """

    adapter: HTTPAdapter
    path: str
    method: str
    payment_header: str | None = None


@dataclass(frozen=True)
class TransportContext:
    """What settlement-time extensions get to see about the exchange."""

    request: HTTPRequestContext
    response_body: bytes = b""


# ============================================================================
# Route Configuration
# ============================================================================

DynamicPayTo = Callable[[HTTPRequestContext], Union[str, Awaitable[str]]]
DynamicPrice = Callable[[HTTPRequestContext], Union[Price, Awaitable[Price]]]


@dataclass
class PaymentOption:
    """One accepted way to pay for a route. pay_to/price may be callables."""

    scheme: str
    pay_to: str | DynamicPayTo
    price: Price | DynamicPrice
    network: Network
    max_timeout_seconds: int | None = None
    extra: dict[str, Any] | None = None


@dataclass
class UnpaidResponseResult:
    """Custom body returned to API clients that have not paid yet."""

    content_type: str
    body: Any


UnpaidResponseBody = Callable[
    [HTTPRequestContext], Union[UnpaidResponseResult, Awaitable[UnpaidResponseResult]]
]


@dataclass
class PaywallConfig:
    """Display options for the browser paywall."""

    app_name: str | None = None
    app_logo: str | None = None
    testnet: bool = True


@dataclass
class RouteConfig:
    """Payment configuration for a route pattern."""

    accepts: PaymentOption | list[PaymentOption]
    resource: str | None = None
    description: str | None = None
    mime_type: str | None = None
    custom_paywall_html: str | None = None
    unpaid_response_body: UnpaidResponseBody | None = None
    extensions: dict[str, Any] | None = None


RoutesConfig = Union[RouteConfig, dict[str, Union[RouteConfig, dict[str, Any]]], dict[str, Any]]


@dataclass
class CompiledRoute:
    verb: str
    regex: re.Pattern[str]
    config: RouteConfig


# ============================================================================
# Protected Request Hooks
# ============================================================================


@dataclass(frozen=True)
class GrantAccessResult:
    """Returned by a protected-request hook to let the request through unpaid."""


@dataclass(frozen=True)
class AbortResult:
    """Returned by a protected-request hook to deny the request."""

    reason: str


ProtectedRequestHook = Callable[
    [HTTPRequestContext, RouteConfig],
    Union[
        None,
        GrantAccessResult,
        AbortResult,
        Awaitable[Union[None, GrantAccessResult, AbortResult]],
    ],
]


# ============================================================================
# Processing Results
# ============================================================================

RESULT_NO_PAYMENT_REQUIRED = "no-payment-required"
RESULT_PAYMENT_ERROR = "payment-error"
RESULT_PAYMENT_VERIFIED = "payment-verified"

ResultType = Literal["no-payment-required", "payment-error", "payment-verified"]


@dataclass
class HTTPResponseInstructions:
    """Status, headers and body the middleware should respond with."""

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None
    is_html: bool = False


@dataclass
class HTTPProcessResult:
    """Outcome of process_http_request."""

    type: ResultType
    response: HTTPResponseInstructions | None = None
    payment_payload: PaymentPayload | None = None
    payment_requirements: PaymentRequirements | None = None
    declared_extensions: dict[str, Any] | None = None


@dataclass
class ProcessSettleResult:
    """Outcome of process_settlement."""

    success: bool
    headers: dict[str, str] = field(default_factory=dict)
    error_reason: str | None = None
    transaction: str | None = None
    network: str | None = None
    payer: str | None = None


# ============================================================================
# Route Validation
# ============================================================================


@dataclass
class RouteValidationError:
    route_pattern: str
    scheme: str
    network: str
    reason: Literal["missing_scheme", "missing_facilitator"]
    message: str


class RouteConfigurationError(Exception):
    """Raised by initialize() when routes reference unsupported payment options."""

    def __init__(self, errors: list[RouteValidationError]) -> None:
        self.errors = errors
        details = "\n".join(f"  - {e.message}" for e in errors)
        super().__init__(f"x402 route configuration errors:\n{details}")
