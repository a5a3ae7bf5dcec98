"""PaymentGate - the per-request payment lifecycle, independent of any framework.

A binding drives it like this::

    context = gate.build_context(adapter, request.headers)
    if not gate.requires_payment(context):
        return await handler(request)

    payment_context = PaymentContext()
    rejection = await gate.before_handle(context, payment_context)
    if rejection is not None:
        return render(rejection)

    response = await handler(request)
    result = await gate.after_handle(payment_context, response)
    if isinstance(result, SettlementFailure):
        return render(gate.settlement_failed_response(result))
    if isinstance(result, SettlementSuccess):
        response.headers.update(result.headers)
    return response
"""

from __future__ import annotations

from collections.abc import Mapping
from functools import partial
from typing import TYPE_CHECKING, Any

from ..http.types import HTTPAdapter, HTTPRequestContext, PaywallConfig
from .context import PaymentContext, VerifiedPayment
from .extensions import initialize_extension
from .headers import select_payment_header
from .initializer import LazyInitializer
from .responses import GateResponse
from .settlement import (
    SettlementFailure,
    SettlementResult,
    SettlementStage,
    settlement_failed_response,
)
from .verification import (
    PaymentRequiredError,
    PaymentVerified,
    VerificationStage,
    error_response,
)

if TYPE_CHECKING:
    from ..http.x402_http_server import PaywallProvider, x402HTTPResourceServer


class PaymentGate:
    """Verify-then-settle around a protected handler.

    Every instance owns its initializers and stages, so two gates on the same
    app never share or suppress each other's state.
    """

    def __init__(
        self,
        http_server: x402HTTPResourceServer,
        paywall_config: PaywallConfig | None = None,
        paywall: PaywallProvider | None = None,
        sync_facilitator_on_start: bool = True,
    ) -> None:
        """Create a gate.

        Args:
            http_server: Route table plus verify/settle operations.
            paywall_config: Display options for the browser paywall.
            paywall: Custom paywall HTML provider.
            sync_facilitator_on_start: Fetch facilitator capabilities before
                the first protected request is verified.
        """
        self._http_server = http_server

        if paywall is not None:
            http_server.register_paywall_provider(paywall)

        self._facilitator_init = LazyInitializer(
            http_server.initialize if sync_facilitator_on_start else None,
            name="facilitator sync",
        )
        self._extension_init = LazyInitializer(
            partial(initialize_extension, http_server),
            name="extension loader",
        )

        self._verification = VerificationStage(
            http_server,
            initializers=(self._facilitator_init, self._extension_init),
            paywall_config=paywall_config,
        )
        self._settlement = SettlementStage(http_server)

    @property
    def http_server(self) -> x402HTTPResourceServer:
        return self._http_server

    @property
    def facilitator_initializer(self) -> LazyInitializer:
        return self._facilitator_init

    @property
    def extension_initializer(self) -> LazyInitializer:
        return self._extension_init

    def build_context(self, adapter: HTTPAdapter, headers: Mapping[str, str]) -> HTTPRequestContext:
        return HTTPRequestContext(
            adapter=adapter,
            path=adapter.get_path(),
            method=adapter.get_method().upper(),
            payment_header=select_payment_header(headers),
        )

    def requires_payment(self, context: HTTPRequestContext) -> bool:
        return self._http_server.requires_payment(context)

    async def before_handle(
        self,
        context: HTTPRequestContext,
        payment_context: PaymentContext,
    ) -> GateResponse | None:
        """Verify the request.

        Returns the response to send instead of calling the handler, or None
        if the handler may run. A verified payment is stored in
        ``payment_context``.
        """
        outcome = await self._verification.verify(context)

        if isinstance(outcome, PaymentRequiredError):
            return error_response(outcome)

        if isinstance(outcome, PaymentVerified):
            payment_context.set(
                VerifiedPayment(
                    context=context,
                    payment_payload=outcome.payment_payload,
                    payment_requirements=outcome.payment_requirements,
                    declared_extensions=outcome.declared_extensions,
                )
            )

        return None

    async def after_handle(
        self,
        payment_context: PaymentContext,
        response: Any,
    ) -> SettlementResult | None:
        """Settle the payment held in ``payment_context``, if any.

        Returns None when nothing was settled (no verified payment, or the
        handler answered with an error status).
        """
        verified = payment_context.take()
        if verified is None:
            return None
        return await self._settlement.settle(verified, response)

    def settlement_failed_response(self, failure: SettlementFailure) -> GateResponse:
        return settlement_failed_response(failure)
