"""Interfaces implemented by payment scheme plugins."""

from __future__ import annotations

from typing import Protocol

from .schemas import AssetAmount, Network, PaymentRequirements, Price, SupportedKind


class SchemeNetworkServer(Protocol):
    """Server-side half of a payment scheme (e.g. "exact" on EVM).

    Turns human prices into atomic asset amounts and adds scheme-specific
    fields to payment requirements. Signature checks and settlement are the
    facilitator's job, not the scheme server's.
    """

    @property
    def scheme(self) -> str:
        """Scheme identifier, e.g. "exact"."""
        ...

    def parse_price(self, price: Price, network: Network) -> AssetAmount:
        """Convert a price into an atomic amount of a concrete asset."""
        ...

    def enhance_payment_requirements(
        self,
        requirements: PaymentRequirements,
        supported_kind: SupportedKind,
        extensions: list[str],
    ) -> PaymentRequirements:
        """Add scheme-specific data (fee payer, EIP-712 domain, ...)."""
        ...
