"""HTTP layer: headers, facilitator client, route handling."""

from .constants import (
    DEFAULT_FACILITATOR_URL,
    HTTP_STATUS_FORBIDDEN,
    HTTP_STATUS_PAYMENT_REQUIRED,
    HTTP_STATUS_PRECONDITION_FAILED,
    PAYMENT_REQUIRED_HEADER,
    PAYMENT_RESPONSE_HEADER,
    PAYMENT_SIGNATURE_HEADER,
    PERMIT2_ALLOWANCE_REQUIRED,
    X_PAYMENT_HEADER,
)
from .facilitator_client import (
    AuthHeaders,
    AuthProvider,
    CreateHeadersAuthProvider,
    FacilitatorConfig,
    HTTPFacilitatorClient,
)
from .types import (
    AbortResult,
    GrantAccessResult,
    HTTPAdapter,
    HTTPProcessResult,
    HTTPRequestContext,
    HTTPResponseInstructions,
    PaymentOption,
    PaywallConfig,
    ProcessSettleResult,
    ProtectedRequestHook,
    RouteConfig,
    RouteConfigurationError,
    RoutesConfig,
    RouteValidationError,
    TransportContext,
    UnpaidResponseResult,
)
from .utils import (
    decode_payment_required_header,
    decode_payment_response_header,
    decode_payment_signature_header,
    encode_payment_required_header,
    encode_payment_response_header,
    encode_payment_signature_header,
)
from .x402_http_server import PaywallProvider, x402HTTPResourceServer

__all__ = [
    # Constants
    "DEFAULT_FACILITATOR_URL",
    "HTTP_STATUS_FORBIDDEN",
    "HTTP_STATUS_PAYMENT_REQUIRED",
    "HTTP_STATUS_PRECONDITION_FAILED",
    "PAYMENT_REQUIRED_HEADER",
    "PAYMENT_RESPONSE_HEADER",
    "PAYMENT_SIGNATURE_HEADER",
    "PERMIT2_ALLOWANCE_REQUIRED",
    "X_PAYMENT_HEADER",
    # Facilitator
    "AuthHeaders",
    "AuthProvider",
    "CreateHeadersAuthProvider",
    "FacilitatorConfig",
    "HTTPFacilitatorClient",
    # Types
    "AbortResult",
    "GrantAccessResult",
    "HTTPAdapter",
    "HTTPProcessResult",
    "HTTPRequestContext",
    "HTTPResponseInstructions",
    "PaymentOption",
    "PaywallConfig",
    "ProcessSettleResult",
    "ProtectedRequestHook",
    "RouteConfig",
    "RouteConfigurationError",
    "RoutesConfig",
    "RouteValidationError",
    "TransportContext",
    "UnpaidResponseResult",
    # Encoding
    "decode_payment_required_header",
    "decode_payment_response_header",
    "decode_payment_signature_header",
    "encode_payment_required_header",
    "encode_payment_response_header",
    "encode_payment_signature_header",
    # Server
    "PaywallProvider",
    "x402HTTPResourceServer",
]
