"""HTTP-enhanced resource server for the x402 protocol."""

from __future__ import annotations

import html
import inspect
import logging
import re
from typing import TYPE_CHECKING, Any, Protocol
from urllib.parse import unquote

from typing_extensions import Self

from ..schemas import (
    PaymentPayload,
    PaymentRequired,
    PaymentRequirements,
    ResourceInfo,
    SettleResponse,
)
from .constants import (
    HTTP_STATUS_FORBIDDEN,
    HTTP_STATUS_PAYMENT_REQUIRED,
    HTTP_STATUS_PRECONDITION_FAILED,
    PAYMENT_REQUIRED_HEADER,
    PAYMENT_RESPONSE_HEADER,
    PERMIT2_ALLOWANCE_REQUIRED,
)
from .types import (
    RESULT_NO_PAYMENT_REQUIRED,
    RESULT_PAYMENT_ERROR,
    RESULT_PAYMENT_VERIFIED,
    AbortResult,
    CompiledRoute,
    GrantAccessResult,
    HTTPAdapter,
    HTTPProcessResult,
    HTTPRequestContext,
    HTTPResponseInstructions,
    PaymentOption,
    PaywallConfig,
    ProcessSettleResult,
    ProtectedRequestHook,
    RouteConfig,
    RouteConfigurationError,
    RoutesConfig,
    RouteValidationError,
    TransportContext,
    UnpaidResponseResult,
)
from .utils import (
    decode_payment_signature_header,
    encode_payment_required_header,
    encode_payment_response_header,
)

if TYPE_CHECKING:
    from ..server import x402ResourceServer

logger = logging.getLogger(__name__)


class PaywallProvider(Protocol):
    """Protocol for custom paywall HTML generation."""

    def generate_html(
        self,
        payment_required: PaymentRequired,
        config: PaywallConfig | None = None,
    ) -> str: ...


async def _resolve(value: Any, context: HTTPRequestContext) -> Any:
    """Call a dynamic config value and await it if needed."""
    if not callable(value):
        return value
    result = value(context)
    if inspect.isawaitable(result):
        result = await result
    return result


# ============================================================================
# Route table
# ============================================================================


def _get(raw: dict[str, Any], camel: str, snake: str, default: Any = None) -> Any:
    if camel in raw:
        return raw[camel]
    return raw.get(snake, default)


def _as_options(accepts: Any) -> list[PaymentOption]:
    if isinstance(accepts, (dict, PaymentOption)):
        accepts = [accepts]
    options = []
    for raw in accepts or []:
        if isinstance(raw, PaymentOption):
            options.append(raw)
            continue
        options.append(
            PaymentOption(
                scheme=raw.get("scheme", ""),
                pay_to=_get(raw, "payTo", "pay_to", ""),
                price=raw.get("price", ""),
                network=raw.get("network", ""),
                max_timeout_seconds=_get(raw, "maxTimeoutSeconds", "max_timeout_seconds"),
                extra=raw.get("extra"),
            )
        )
    return options


def route_config_from_dict(raw: dict[str, Any]) -> RouteConfig:
    """Build a RouteConfig from a dict using camelCase or snake_case keys."""
    return RouteConfig(
        accepts=_as_options(raw.get("accepts")),
        resource=raw.get("resource"),
        description=raw.get("description"),
        mime_type=_get(raw, "mimeType", "mime_type"),
        custom_paywall_html=_get(raw, "customPaywallHtml", "custom_paywall_html"),
        unpaid_response_body=_get(raw, "unpaidResponseBody", "unpaid_response_body"),
        extensions=raw.get("extensions"),
    )


def _normalize_routes(routes: RoutesConfig) -> dict[str, RouteConfig]:
    # A bare RouteConfig (or a dict with "accepts") protects every path
    if isinstance(routes, RouteConfig):
        return {"*": routes}
    if not isinstance(routes, dict):
        raise ValueError(f"Invalid routes config: {type(routes).__name__}")
    if "accepts" in routes:
        return {"*": route_config_from_dict(routes)}

    table: dict[str, RouteConfig] = {}
    for pattern, config in routes.items():
        if isinstance(config, dict):
            config = route_config_from_dict(config)
        if not isinstance(config, RouteConfig):
            raise ValueError(f"Invalid route config for pattern {pattern}")
        table[pattern] = config
    return table


def normalize_path(path: str) -> str:
    """Strip query/fragment, decode, collapse slashes and drop the trailing one."""
    path = unquote(re.split(r"[?#]", path, maxsplit=1)[0])
    path = re.sub(r"/{2,}", "/", path).rstrip("/")
    return path or "/"


def compile_route_pattern(pattern: str) -> tuple[str, re.Pattern[str]]:
    """Turn ``"VERB /path"`` into (verb, regex).

    A missing verb matches any method. ``*`` matches any run of characters
    and ``[name]`` matches one path segment. Matching ignores case.
    """
    verb, _, path = pattern.strip().rpartition(" ")
    verb = verb.strip().upper() or "*"
    if path != "*":
        path = normalize_path(path)

    regex = re.escape(path).replace(r"\*", ".*?")
    regex = re.sub(r"\\\[[^\]]+\\\]", "[^/]+", regex)
    return verb, re.compile(f"^{regex}$", re.IGNORECASE)


# ============================================================================
# x402HTTPResourceServer
# ============================================================================


class x402HTTPResourceServer:
    """HTTP-enhanced x402 resource server.

    Provides framework-agnostic HTTP protocol handling for payment-protected
    resources. Framework middleware (see ``x402_gate.fastapi``) drives it.
    """

    def __init__(
        self,
        server: x402ResourceServer,
        routes: RoutesConfig,
    ) -> None:
        """Create HTTP resource server.

        Args:
            server: Core x402ResourceServer instance.
            routes: Route configuration for payment-protected endpoints.

        Raises:
            ValueError: If a route config entry has an unsupported type.
        """
        self._server = server
        self._routes_config = routes
        self._compiled_routes: list[CompiledRoute] = []
        self._paywall_provider: PaywallProvider | None = None
        self._protected_request_hooks: list[ProtectedRequestHook] = []

        for pattern, config in _normalize_routes(routes).items():
            verb, regex = compile_route_pattern(pattern)
            self._compiled_routes.append(CompiledRoute(verb=verb, regex=regex, config=config))

    @property
    def server(self) -> x402ResourceServer:
        return self._server

    @property
    def routes(self) -> RoutesConfig:
        return self._routes_config

    def route_configs(self) -> list[RouteConfig]:
        """Normalized configs of every compiled route."""
        return [route.config for route in self._compiled_routes]

    # =========================================================================
    # Initialization & Registration
    # =========================================================================

    async def initialize(self) -> None:
        """Sync facilitator capabilities and validate the route table.

        Raises:
            RouteConfigurationError: If any route's payment options don't have
                corresponding registered schemes or facilitator support.
        """
        await self._server.initialize()

        errors = self._validate_route_configuration()
        if errors:
            raise RouteConfigurationError(errors)

    def register_paywall_provider(self, provider: PaywallProvider) -> Self:
        self._paywall_provider = provider
        return self

    def on_protected_request(self, hook: ProtectedRequestHook) -> Self:
        """Register a hook that runs before payment processing on protected routes.

        The hook receives (context, route_config) and may return None to
        continue, GrantAccessResult() to skip payment, or AbortResult(reason)
        to deny with 403. Hooks run in registration order; the first non-None
        result wins.
        """
        self._protected_request_hooks.append(hook)
        return self

    # =========================================================================
    # Request Processing
    # =========================================================================

    def requires_payment(self, context: HTTPRequestContext) -> bool:
        """Check if a request requires payment."""
        return self._match_route(context.path, context.method) is not None

    async def process_http_request(
        self,
        context: HTTPRequestContext,
        paywall_config: PaywallConfig | None = None,
    ) -> HTTPProcessResult:
        """Process HTTP request and return result.

        Returns:
            HTTPProcessResult indicating:
            - no-payment-required: Route is unprotected or a hook granted access
            - payment-verified: Payment valid, proceed with request
            - payment-error: Respond with the attached instructions
        """
        route_config = self._match_route(context.path, context.method)
        if route_config is None:
            return HTTPProcessResult(type=RESULT_NO_PAYMENT_REQUIRED)

        for hook in self._protected_request_hooks:
            hook_result = hook(context, route_config)
            if inspect.isawaitable(hook_result):
                hook_result = await hook_result
            if isinstance(hook_result, GrantAccessResult):
                logger.debug("Protected request hook granted access to %s", context.path)
                return HTTPProcessResult(type=RESULT_NO_PAYMENT_REQUIRED)
            if isinstance(hook_result, AbortResult):
                logger.info("Protected request hook aborted %s: %s", context.path, hook_result.reason)
                return HTTPProcessResult(
                    type=RESULT_PAYMENT_ERROR,
                    response=HTTPResponseInstructions(
                        status=HTTP_STATUS_FORBIDDEN,
                        headers={"Content-Type": "application/json"},
                        body={"error": hook_result.reason},
                    ),
                )

        resource_info = ResourceInfo(
            url=route_config.resource or context.adapter.get_url(),
            description=route_config.description or "",
            mime_type=route_config.mime_type or "",
        )

        requirements = await self._build_requirements(
            route_config.accepts,
            context,
        )

        extensions = route_config.extensions
        if extensions:
            extensions = self._server.enrich_extensions(extensions, context)

        if not context.payment_header:
            unpaid_body = None
            if route_config.unpaid_response_body:
                unpaid_body = await _resolve(route_config.unpaid_response_body, context)

            return HTTPProcessResult(
                type=RESULT_PAYMENT_ERROR,
                response=self._create_http_response(
                    self._server.create_payment_required_response(
                        requirements, resource_info, "Payment required", extensions
                    ),
                    is_web_browser=self._is_web_browser(context.adapter),
                    paywall_config=paywall_config,
                    custom_html=route_config.custom_paywall_html,
                    unpaid_response=unpaid_body,
                ),
            )

        def payment_error(error: str | None, status: int = HTTP_STATUS_PAYMENT_REQUIRED):
            return HTTPProcessResult(
                type=RESULT_PAYMENT_ERROR,
                response=self._create_http_response(
                    self._server.create_payment_required_response(
                        requirements, resource_info, error, extensions
                    ),
                    is_web_browser=False,
                    paywall_config=paywall_config,
                    status=status,
                ),
            )

        try:
            payment_payload = decode_payment_signature_header(context.payment_header)
        except Exception as e:
            logger.warning("Invalid payment header on %s: %s", context.path, e)
            return payment_error("Invalid payment header format")

        matching_reqs = self._server.find_matching_requirements(requirements, payment_payload)
        if matching_reqs is None:
            return payment_error("No matching payment requirements")

        try:
            verify_result = await self._server.verify_payment(payment_payload, matching_reqs)
        except Exception as e:
            logger.warning("Payment verification errored on %s: %s", context.path, e)
            return payment_error(str(e))

        if not verify_result.is_valid:
            status = HTTP_STATUS_PAYMENT_REQUIRED
            if verify_result.invalid_reason == PERMIT2_ALLOWANCE_REQUIRED:
                status = HTTP_STATUS_PRECONDITION_FAILED
            return payment_error(verify_result.invalid_reason, status)

        return HTTPProcessResult(
            type=RESULT_PAYMENT_VERIFIED,
            payment_payload=payment_payload,
            payment_requirements=matching_reqs,
            declared_extensions=extensions,
        )

    # =========================================================================
    # Settlement
    # =========================================================================

    async def process_settlement(
        self,
        payment_payload: PaymentPayload,
        requirements: PaymentRequirements,
        declared_extensions: dict[str, Any] | None = None,
        transport_context: TransportContext | None = None,
    ) -> ProcessSettleResult:
        """Settle a verified payment after the protected resource was produced.

        Args:
            payment_payload: The verified payment payload.
            requirements: The matching payment requirements.
            declared_extensions: Extensions declared by the route, if any.
            transport_context: Request context and serialized response body,
                handed to settlement-time extensions.

        Returns:
            ProcessSettleResult with a PAYMENT-RESPONSE header on success.
        """
        try:
            settle_response = await self._server.settle_payment(payment_payload, requirements)

            if not settle_response.success:
                return ProcessSettleResult(
                    success=False,
                    error_reason=settle_response.error_reason or "Settlement failed",
                )

            if declared_extensions:
                enriched = self._server.enrich_settlement(
                    declared_extensions, settle_response, transport_context
                )
                if enriched:
                    settle_response = settle_response.model_copy(update={"extensions": enriched})

            return ProcessSettleResult(
                success=True,
                headers=self._create_settlement_headers(settle_response),
                transaction=settle_response.transaction,
                network=settle_response.network,
                payer=settle_response.payer,
            )

        except Exception as e:
            logger.warning("Settlement errored: %s", e)
            return ProcessSettleResult(success=False, error_reason=str(e))

    # =========================================================================
    # Internal Methods
    # =========================================================================

    def _match_route(self, path: str, method: str) -> RouteConfig | None:
        path = normalize_path(path)
        method = method.upper()
        return next(
            (
                route.config
                for route in self._compiled_routes
                if route.verb in ("*", method) and route.regex.match(path)
            ),
            None,
        )

    async def _build_requirements(
        self,
        accepts: PaymentOption | list[PaymentOption],
        context: HTTPRequestContext,
    ) -> list[PaymentRequirements]:
        """Build requirements for every option, resolving dynamic payTo/price."""
        from ..server import ResourceConfig

        requirements: list[PaymentRequirements] = []
        for option in _as_options(accepts):
            built = self._server.build_payment_requirements(
                ResourceConfig(
                    scheme=option.scheme,
                    network=option.network,
                    pay_to=await _resolve(option.pay_to, context),
                    price=await _resolve(option.price, context),
                    max_timeout_seconds=option.max_timeout_seconds,
                )
            )
            if option.extra:
                built = [r.model_copy(update={"extra": {**r.extra, **option.extra}}) for r in built]
            requirements.extend(built)
        return requirements

    @staticmethod
    def _is_web_browser(adapter: HTTPAdapter) -> bool:
        return "text/html" in adapter.get_accept_header() and "Mozilla" in adapter.get_user_agent()

    def _create_http_response(
        self,
        payment_required: PaymentRequired,
        is_web_browser: bool,
        paywall_config: PaywallConfig | None = None,
        custom_html: str | None = None,
        unpaid_response: UnpaidResponseResult | None = None,
        status: int = HTTP_STATUS_PAYMENT_REQUIRED,
    ) -> HTTPResponseInstructions:
        headers = {PAYMENT_REQUIRED_HEADER: encode_payment_required_header(payment_required)}

        if is_web_browser:
            page = custom_html or self._render_paywall(payment_required, paywall_config)
            return HTTPResponseInstructions(status=status, headers=headers, body=page, is_html=True)

        if unpaid_response:
            headers["Content-Type"] = unpaid_response.content_type
            body: Any = unpaid_response.body
        else:
            headers["Content-Type"] = "application/json"
            body = payment_required.model_dump(by_alias=True, exclude_none=True, mode="json")

        return HTTPResponseInstructions(status=status, headers=headers, body=body)

    @staticmethod
    def _create_settlement_headers(settle_response: SettleResponse) -> dict[str, str]:
        return {PAYMENT_RESPONSE_HEADER: encode_payment_response_header(settle_response)}

    def _validate_route_configuration(self) -> list[RouteValidationError]:
        """Check each payment option against registered schemes and facilitator support."""
        errors: list[RouteValidationError] = []

        for route in self._compiled_routes:
            label = f"{route.verb} {route.regex.pattern}"
            for option in _as_options(route.config.accepts):
                target = f'"{option.scheme}" on "{option.network}"'
                if not self._server.has_registered_scheme(option.network, option.scheme):
                    reason, message = "missing_scheme", f"no scheme server for {target}"
                elif not self._server.get_supported_kind(2, option.network, option.scheme):
                    reason, message = "missing_facilitator", f"no facilitator supports {target}"
                else:
                    continue
                errors.append(
                    RouteValidationError(
                        route_pattern=label,
                        scheme=option.scheme,
                        network=option.network,
                        reason=reason,
                        message=f"Route {label}: {message}",
                    )
                )

        return errors

    def _render_paywall(
        self,
        payment_required: PaymentRequired,
        config: PaywallConfig | None,
    ) -> str:
        if self._paywall_provider:
            return self._paywall_provider.generate_html(payment_required, config)

        config = config or PaywallConfig()
        title = "Payment Required"
        if config.app_name:
            title = f"{config.app_name} - {title}"

        logo = ""
        if config.app_logo:
            logo = f'<img src="{html.escape(config.app_logo)}" alt="" style="max-width: 200px;">'

        resource = payment_required.resource
        return _PAYWALL_TEMPLATE.format(
            title=html.escape(title),
            logo=logo,
            resource=html.escape((resource.description or resource.url) if resource else ""),
            price=html.escape(_display_price(payment_required)),
            network_note="<p><em>Testnet payment</em></p>" if config.testnet else "",
            requirements=html.escape(
                payment_required.model_dump_json(by_alias=True, exclude_none=True)
            ),
        )


def _display_price(payment_required: PaymentRequired) -> str:
    if not payment_required.accepts:
        return ""
    first = payment_required.accepts[0]
    name = (first.extra or {}).get("name") or first.asset
    return f"{first.amount} {name}"


_PAYWALL_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{title}</title>
</head>
<body style="max-width: 600px; margin: 50px auto; padding: 20px; font-family: system-ui;">
    {logo}
    <h1>{title}</h1>
    <p><strong>Resource:</strong> {resource}</p>
    <p><strong>Price:</strong> {price}</p>
    {network_note}
    <div id="x402-paywall" data-payment-required="{requirements}">
        <p>Pay with an x402-compatible client to continue.</p>
    </div>
</body>
</html>"""
