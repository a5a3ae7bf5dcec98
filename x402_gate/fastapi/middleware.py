"""FastAPI middleware that gates routes behind x402 payments."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp

from ..gate import (
    GateResponse,
    PaymentContext,
    PaymentGate,
    SettlementFailure,
)
from ..http import (
    HTTPFacilitatorClient,
    PaywallConfig,
    PaywallProvider,
    RoutesConfig,
    x402HTTPResourceServer,
)
from ..interfaces import SchemeNetworkServer
from ..schemas import Network
from ..server import FacilitatorClient, x402ResourceServer
from .adapter import FastAPIAdapter, read_json_body

logger = logging.getLogger(__name__)

CallNext = Callable[[Request], Awaitable[Response]]
PaymentMiddleware = Callable[[Request, CallNext], Awaitable[Response]]


@dataclass
class SchemeRegistration:
    """A scheme server to register for a network in payment_middleware_from_config."""

    network: Network
    server: SchemeNetworkServer


def to_starlette_response(response: GateResponse) -> Response:
    return Response(
        content=response.content,
        status_code=response.status,
        headers=response.headers,
    )


def payment_middleware_from_http_server(
    http_server: x402HTTPResourceServer,
    paywall_config: PaywallConfig | None = None,
    paywall: PaywallProvider | None = None,
    sync_facilitator_on_start: bool = True,
) -> PaymentMiddleware:
    """Create payment middleware around a pre-configured HTTP resource server.

    Use this when hooks (``on_protected_request``) or a paywall provider were
    registered on the server up front.

    Example:
        ```python
        http_server = x402HTTPResourceServer(resource_server, routes)
        http_server.on_protected_request(allow_api_keys)

        app = FastAPI()
        app.middleware("http")(payment_middleware_from_http_server(http_server))
        ```
    """
    gate = PaymentGate(
        http_server,
        paywall_config=paywall_config,
        paywall=paywall,
        sync_facilitator_on_start=sync_facilitator_on_start,
    )

    async def middleware(request: Request, call_next: CallNext) -> Response:
        context = gate.build_context(FastAPIAdapter(request), request.headers)

        if not gate.requires_payment(context):
            return await call_next(request)

        body = await read_json_body(request)
        if body is not None:
            context = gate.build_context(FastAPIAdapter(request, body), request.headers)

        # Lives only in this call frame
        payment_context = PaymentContext()

        rejection = await gate.before_handle(context, payment_context)
        if rejection is not None:
            return to_starlette_response(rejection)

        response = await call_next(request)

        result = await gate.after_handle(payment_context, response)
        if result is None:
            return response

        if isinstance(result, SettlementFailure):
            return to_starlette_response(gate.settlement_failed_response(result))

        for key, value in result.headers.items():
            response.headers[key] = value
        logger.debug("Settled payment for %s %s", context.method, context.path)
        return response

    return middleware


def payment_middleware(
    routes: RoutesConfig,
    server: x402ResourceServer,
    paywall_config: PaywallConfig | None = None,
    paywall: PaywallProvider | None = None,
    sync_facilitator_on_start: bool = True,
) -> PaymentMiddleware:
    """Create payment middleware from routes and a resource server.

    Args:
        routes: Route configuration for protected endpoints.
        server: Resource server with schemes (and extensions) registered.
        paywall_config: Display options for the browser paywall.
        paywall: Custom paywall HTML provider.
        sync_facilitator_on_start: Fetch facilitator capabilities before the
            first protected request.
    """
    http_server = x402HTTPResourceServer(server, routes)
    return payment_middleware_from_http_server(
        http_server,
        paywall_config=paywall_config,
        paywall=paywall,
        sync_facilitator_on_start=sync_facilitator_on_start,
    )


def payment_middleware_from_config(
    routes: RoutesConfig,
    facilitator_clients: FacilitatorClient | list[FacilitatorClient] | None = None,
    schemes: list[SchemeRegistration] | None = None,
    paywall_config: PaywallConfig | None = None,
    paywall: PaywallProvider | None = None,
    sync_facilitator_on_start: bool = True,
) -> PaymentMiddleware:
    """Create payment middleware, building the resource server as well.

    Without ``facilitator_clients`` the public facilitator is used.
    """
    if facilitator_clients is None:
        facilitator_clients = HTTPFacilitatorClient()

    server = x402ResourceServer(facilitator_clients)
    for registration in schemes or []:
        server.register(registration.network, registration.server)

    return payment_middleware(
        routes,
        server,
        paywall_config=paywall_config,
        paywall=paywall,
        sync_facilitator_on_start=sync_facilitator_on_start,
    )


class PaymentMiddlewareASGI(BaseHTTPMiddleware):
    """Class form of the payment middleware for ``app.add_middleware``.

    Example:
        ```python
        app.add_middleware(PaymentMiddlewareASGI, routes=routes, server=server)
        ```
    """

    def __init__(
        self,
        app: ASGIApp,
        routes: RoutesConfig,
        server: x402ResourceServer,
        paywall_config: PaywallConfig | None = None,
        paywall: PaywallProvider | None = None,
        sync_facilitator_on_start: bool = True,
    ) -> None:
        super().__init__(app)
        self._middleware = payment_middleware(
            routes,
            server,
            paywall_config=paywall_config,
            paywall=paywall,
            sync_facilitator_on_start=sync_facilitator_on_start,
        )

    async def dispatch(self, request: Request, call_next: Any) -> Response:
        return await self._middleware(request, call_next)
