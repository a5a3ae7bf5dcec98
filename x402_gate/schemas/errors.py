"""Exception types raised by the resource server."""

from __future__ import annotations


class PaymentError(Exception):
    """Base class for payment errors."""


class SchemeNotFoundError(PaymentError):
    """No scheme server or facilitator is registered for a scheme/network."""

    def __init__(self, scheme: str, network: str) -> None:
        self.scheme = scheme
        self.network = network
        super().__init__(f'No scheme "{scheme}" registered for network "{network}"')
