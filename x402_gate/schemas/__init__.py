"""Wire models for the x402 protocol."""

from .base import X402_VERSION, AssetAmount, BaseX402Model, Money, Network, Price
from .errors import PaymentError, SchemeNotFoundError
from .payments import PaymentPayload, PaymentRequired, PaymentRequirements, ResourceInfo
from .responses import SettleResponse, SupportedKind, SupportedResponse, VerifyResponse

__all__ = [
    # Base
    "X402_VERSION",
    "BaseX402Model",
    "AssetAmount",
    "Money",
    "Network",
    "Price",
    # Payments
    "ResourceInfo",
    "PaymentRequirements",
    "PaymentRequired",
    "PaymentPayload",
    # Responses
    "VerifyResponse",
    "SettleResponse",
    "SupportedKind",
    "SupportedResponse",
    # Errors
    "PaymentError",
    "SchemeNotFoundError",
]
