"""Payment credential selection from request headers."""

from __future__ import annotations

from collections.abc import Mapping

from ..http.constants import PAYMENT_SIGNATURE_HEADER, X_PAYMENT_HEADER

# Highest priority first
PAYMENT_HEADER_PRECEDENCE = (PAYMENT_SIGNATURE_HEADER, X_PAYMENT_HEADER)


def _lookup(headers: Mapping[str, str], name: str) -> str | None:
    value = headers.get(name)
    if value is None:
        value = headers.get(name.lower())
    if value is None:
        lowered = name.lower()
        for key, candidate in headers.items():
            if key.lower() == lowered:
                return candidate
    return value


def select_payment_header(headers: Mapping[str, str]) -> str | None:
    """Return the payment credential carried by the request, if any.

    PAYMENT-SIGNATURE wins over the legacy X-PAYMENT header. Empty values
    count as absent, so an empty PAYMENT-SIGNATURE falls through to X-PAYMENT.
    """
    for name in PAYMENT_HEADER_PRECEDENCE:
        value = _lookup(headers, name)
        if value:
            return value
    return None
