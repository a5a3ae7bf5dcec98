"""Verification stage: decide whether a protected request may reach its handler."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Union

from ..http.constants import HTTP_STATUS_PAYMENT_REQUIRED
from ..http.types import (
    RESULT_NO_PAYMENT_REQUIRED,
    RESULT_PAYMENT_VERIFIED,
    HTTPProcessResult,
    HTTPRequestContext,
    PaywallConfig,
)
from ..schemas import PaymentPayload, PaymentRequirements
from .initializer import LazyInitializer
from .responses import GateResponse, html_response, json_response

if TYPE_CHECKING:
    from ..http.x402_http_server import x402HTTPResourceServer

logger = logging.getLogger(__name__)

VERIFICATION_FAILED_BODY = {"error": "Payment verification failed"}


# ============================================================================
# Outcomes
# ============================================================================


@dataclass(frozen=True)
class NoPaymentRequired:
    """Handler may run without payment; nothing will be settled.

    ``route_protected`` is False for routes outside the route table and True
    when a protected-request hook granted access.
    """

    route_protected: bool = True


@dataclass(frozen=True)
class PaymentRequiredError:
    """Request is rejected; render this instead of calling the handler."""

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None
    is_html: bool = False


@dataclass(frozen=True)
class PaymentVerified:
    """Payment passed verification and must be settled after the handler."""

    payment_payload: PaymentPayload
    payment_requirements: PaymentRequirements
    declared_extensions: dict[str, Any] | None = None


VerificationOutcome = Union[NoPaymentRequired, PaymentRequiredError, PaymentVerified]


def verification_failed() -> PaymentRequiredError:
    return PaymentRequiredError(
        status=HTTP_STATUS_PAYMENT_REQUIRED,
        headers={},
        body=dict(VERIFICATION_FAILED_BODY),
        is_html=False,
    )


# ============================================================================
# Stage
# ============================================================================


class VerificationStage:
    """Runs the payment checks for a request before its handler."""

    def __init__(
        self,
        http_server: x402HTTPResourceServer,
        initializers: Sequence[LazyInitializer] = (),
        paywall_config: PaywallConfig | None = None,
    ) -> None:
        self._http_server = http_server
        self._initializers = list(initializers)
        self._paywall_config = paywall_config

    async def verify(self, context: HTTPRequestContext) -> VerificationOutcome:
        """Classify the request.

        Never raises: any error while waiting for startup work or talking to
        the facilitator becomes a 402.
        """
        if not self._http_server.requires_payment(context):
            return NoPaymentRequired(route_protected=False)

        try:
            for initializer in self._initializers:
                await initializer.ready()
            result = await self._http_server.process_http_request(context, self._paywall_config)
        except Exception:
            logger.exception("Payment verification errored for %s %s", context.method, context.path)
            return verification_failed()

        return self._to_outcome(context, result)

    @staticmethod
    def _to_outcome(context: HTTPRequestContext, result: HTTPProcessResult) -> VerificationOutcome:
        if result.type == RESULT_NO_PAYMENT_REQUIRED:
            return NoPaymentRequired(route_protected=True)

        if result.type == RESULT_PAYMENT_VERIFIED:
            if result.payment_payload is None or result.payment_requirements is None:
                logger.error("Verified result without payment data for %s", context.path)
                return verification_failed()
            return PaymentVerified(
                payment_payload=result.payment_payload,
                payment_requirements=result.payment_requirements,
                declared_extensions=result.declared_extensions,
            )

        if result.response is None:
            return verification_failed()

        logger.debug(
            "Payment required for %s %s (status %d)",
            context.method,
            context.path,
            result.response.status,
        )
        return PaymentRequiredError(
            status=result.response.status,
            headers=dict(result.response.headers),
            body=result.response.body,
            is_html=result.response.is_html,
        )


def error_response(outcome: PaymentRequiredError) -> GateResponse:
    """Render a rejected outcome, copying every header it carries."""
    if outcome.is_html:
        body = outcome.body if isinstance(outcome.body, str) else str(outcome.body or "")
        return html_response(outcome.status, body, outcome.headers)

    # Pre-rendered bodies go out as-is under whatever content type they carry
    if isinstance(outcome.body, (str, bytes)):
        content = outcome.body.encode("utf-8") if isinstance(outcome.body, str) else outcome.body
        return GateResponse(status=outcome.status, headers=dict(outcome.headers), content=content)

    try:
        return json_response(outcome.status, outcome.body, outcome.headers)
    except (TypeError, ValueError):
        logger.exception("Rejection body for status %d is not JSON-serializable", outcome.status)
        fallback = verification_failed()
        return json_response(fallback.status, fallback.body)
