"""Framework-neutral payment lifecycle: verify before the handler, settle after."""

from .context import PaymentContext, VerifiedPayment
from .extensions import (
    BAZAAR,
    NullExtensionRegistry,
    extension_registry,
    initialize_extension,
    load_extension,
    routes_declare_extension,
)
from .headers import select_payment_header
from .initializer import LazyInitializer
from .lifecycle import PaymentGate
from .responses import GateResponse
from .settlement import (
    SettlementFailure,
    SettlementResult,
    SettlementStage,
    SettlementSuccess,
    response_status,
    settlement_failed_response,
    snapshot_response_body,
)
from .verification import (
    NoPaymentRequired,
    PaymentRequiredError,
    PaymentVerified,
    VerificationOutcome,
    VerificationStage,
    error_response,
)

__all__ = [
    "BAZAAR",
    "GateResponse",
    "LazyInitializer",
    "NoPaymentRequired",
    "NullExtensionRegistry",
    "PaymentContext",
    "PaymentGate",
    "PaymentRequiredError",
    "PaymentVerified",
    "SettlementFailure",
    "SettlementResult",
    "SettlementStage",
    "SettlementSuccess",
    "VerificationOutcome",
    "VerificationStage",
    "VerifiedPayment",
    "error_response",
    "extension_registry",
    "initialize_extension",
    "load_extension",
    "response_status",
    "routes_declare_extension",
    "select_payment_header",
    "settlement_failed_response",
    "snapshot_response_body",
]
