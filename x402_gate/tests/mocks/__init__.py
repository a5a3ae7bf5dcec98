"""Mock implementations for testing."""

from .adapter import MockHTTPAdapter
from .cash import (
    CASH_NETWORK,
    CashFacilitatorClient,
    CashSchemeNetworkServer,
    build_cash_payment_payload,
    build_cash_payment_requirements,
)
from .http_server import make_stub_http_server, payment_error_result

__all__ = [
    "CASH_NETWORK",
    "CashFacilitatorClient",
    "CashSchemeNetworkServer",
    "MockHTTPAdapter",
    "build_cash_payment_payload",
    "build_cash_payment_requirements",
    "make_stub_http_server",
    "payment_error_result",
]
