"""Payment requirement and payload models (x402 v2)."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from .base import X402_VERSION, BaseX402Model, Network


class ResourceInfo(BaseX402Model):
    """Description of the resource being paid for."""

    url: str
    description: str | None = None
    mime_type: str | None = None


class PaymentRequirements(BaseX402Model):
    """One way of paying for a resource."""

    scheme: str
    network: Network
    asset: str
    amount: str
    pay_to: str
    max_timeout_seconds: int = 300
    extra: dict[str, Any] = Field(default_factory=dict)


class PaymentRequired(BaseX402Model):
    """Body of a 402 response: every accepted way to pay."""

    x402_version: int = X402_VERSION
    error: str | None = None
    resource: ResourceInfo | None = None
    accepts: list[PaymentRequirements]
    extensions: dict[str, Any] | None = None


class PaymentPayload(BaseX402Model):
    """Client proof of payment, sent base64-encoded in the payment header."""

    x402_version: int = X402_VERSION
    payload: dict[str, Any]
    accepted: PaymentRequirements
    resource: ResourceInfo | None = None
    extensions: dict[str, Any] | None = None

    def get_scheme(self) -> str:
        return self.accepted.scheme

    def get_network(self) -> Network:
        return self.accepted.network
