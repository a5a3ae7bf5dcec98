"""Per-request carrier for a verified payment."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..http.types import HTTPRequestContext
from ..schemas import PaymentPayload, PaymentRequirements


@dataclass(frozen=True)
class VerifiedPayment:
    """Everything settlement needs about a payment that passed verification."""

    context: HTTPRequestContext
    payment_payload: PaymentPayload
    payment_requirements: PaymentRequirements
    declared_extensions: dict[str, Any] | None = None


class PaymentContext:
    """Slot written at most once before the handler and read at most once after.

    Create one per request, as a local of the code handling that request.
    """

    __slots__ = ("_verified", "_written")

    def __init__(self) -> None:
        self._verified: VerifiedPayment | None = None
        self._written = False

    @property
    def populated(self) -> bool:
        return self._verified is not None

    def set(self, verified: VerifiedPayment) -> None:
        """Store the verified payment.

        Raises:
            RuntimeError: If the slot was already written.
        """
        if self._written:
            raise RuntimeError("PaymentContext already populated for this request")
        self._verified = verified
        self._written = True

    def take(self) -> VerifiedPayment | None:
        """Return the verified payment and empty the slot."""
        verified = self._verified
        self._verified = None
        return verified
