"""x402-gate - pay-per-request HTTP gating for the x402 protocol.

Verifies a client's payment before a protected handler runs and settles it
only after the handler succeeded. Settlement failures never leak the
protected response.

Quick Start:
    ```python
    from fastapi import FastAPI
    from x402_gate import x402ResourceServer
    from x402_gate.fastapi import payment_middleware
    from x402_gate.http import HTTPFacilitatorClient

    server = x402ResourceServer(HTTPFacilitatorClient({"url": FACILITATOR_URL}))
    server.register("eip155:84532", MyExactEvmServerScheme())

    routes = {
        "GET /weather": {
            "accepts": {
                "scheme": "exact",
                "payTo": PAY_TO,
                "price": "$0.01",
                "network": "eip155:84532",
            },
        },
    }

    app = FastAPI()
    app.middleware("http")(payment_middleware(routes, server))
    ```
"""

from .gate import (
    PaymentContext,
    PaymentGate,
    SettlementFailure,
    SettlementSuccess,
    select_payment_header,
)
from .http import (
    HTTPFacilitatorClient,
    HTTPRequestContext,
    PaymentOption,
    PaywallConfig,
    RouteConfig,
    x402HTTPResourceServer,
)
from .interfaces import SchemeNetworkServer
from .schemas import (
    X402_VERSION,
    AssetAmount,
    Network,
    PaymentPayload,
    PaymentRequired,
    PaymentRequirements,
    Price,
    ResourceInfo,
    SettleResponse,
    SupportedResponse,
    VerifyResponse,
)
from .server import FacilitatorClient, ResourceConfig, x402ResourceServer

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Servers
    "x402ResourceServer",
    "x402HTTPResourceServer",
    "FacilitatorClient",
    "HTTPFacilitatorClient",
    "ResourceConfig",
    "SchemeNetworkServer",
    # Gate
    "PaymentGate",
    "PaymentContext",
    "SettlementFailure",
    "SettlementSuccess",
    "select_payment_header",
    # HTTP types
    "HTTPRequestContext",
    "PaymentOption",
    "PaywallConfig",
    "RouteConfig",
    # Schemas
    "X402_VERSION",
    "AssetAmount",
    "Network",
    "PaymentPayload",
    "PaymentRequired",
    "PaymentRequirements",
    "Price",
    "ResourceInfo",
    "SettleResponse",
    "SupportedResponse",
    "VerifyResponse",
]
