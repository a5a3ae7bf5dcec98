"""Tests for x402HTTPResourceServer."""

import asyncio

import pytest

from x402_gate import x402ResourceServer
from x402_gate.http import (
    PAYMENT_REQUIRED_HEADER,
    PAYMENT_RESPONSE_HEADER,
    AbortResult,
    GrantAccessResult,
    HTTPRequestContext,
    PaymentOption,
    RouteConfig,
    RouteConfigurationError,
    TransportContext,
    UnpaidResponseResult,
    decode_payment_required_header,
    decode_payment_response_header,
    encode_payment_signature_header,
    x402HTTPResourceServer,
)
from x402_gate.http.x402_http_server import (
    compile_route_pattern,
    normalize_path,
    route_config_from_dict,
)
from x402_gate.schemas import SettleResponse, VerifyResponse

from ..mocks import (
    CashFacilitatorClient,
    CashSchemeNetworkServer,
    MockHTTPAdapter,
    build_cash_payment_payload,
    build_cash_payment_requirements,
)

ROUTES = {
    "GET /weather": {
        "accepts": {
            "scheme": "cash",
            "network": "x402:cash",
            "payTo": "merchant@example.com",
            "price": "$1.00",
        },
        "description": "Weather report",
    },
}


def make_context(path="/weather", method="GET", payment_header=None, **adapter_kwargs):
    return HTTPRequestContext(
        adapter=MockHTTPAdapter(path=path, method=method, **adapter_kwargs),
        path=path,
        method=method,
        payment_header=payment_header,
    )


def valid_header(amount="1.00"):
    requirements = build_cash_payment_requirements(amount=amount)
    return encode_payment_signature_header(build_cash_payment_payload(requirements))


class TestRouteMatching:
    def setup_method(self):
        self.http_server = x402HTTPResourceServer(
            x402ResourceServer(CashFacilitatorClient()),
            {
                "GET /weather": ROUTES["GET /weather"],
                "/api/*": ROUTES["GET /weather"],
                "POST /items/[id]": ROUTES["GET /weather"],
            },
        )

    def test_verb_and_path(self):
        assert self.http_server.requires_payment(make_context("/weather"))
        assert not self.http_server.requires_payment(make_context("/weather", method="POST"))

    def test_wildcard_any_verb(self):
        assert self.http_server.requires_payment(make_context("/api/v1/data", method="DELETE"))

    def test_param_segment(self):
        assert self.http_server.requires_payment(make_context("/items/42", method="POST"))
        assert not self.http_server.requires_payment(make_context("/items/42/x", method="POST"))

    def test_path_normalization(self):
        assert self.http_server.requires_payment(make_context("//weather/?units=c"))

    def test_unprotected(self):
        assert not self.http_server.requires_payment(make_context("/health"))

    def test_single_route_config_applies_everywhere(self):
        http_server = x402HTTPResourceServer(
            x402ResourceServer(CashFacilitatorClient()),
            RouteConfig(
                accepts=PaymentOption(
                    scheme="cash", pay_to="m", price="$1.00", network="x402:cash"
                )
            ),
        )
        assert http_server.requires_payment(make_context("/anything", method="PUT"))

    def test_invalid_route_config(self):
        with pytest.raises(ValueError):
            x402HTTPResourceServer(x402ResourceServer(), {"GET /x": 42})


class TestRouteTable:
    def test_compile_pattern_with_verb(self):
        verb, regex = compile_route_pattern("post /Items/[id]")

        assert verb == "POST"
        assert regex.match("/items/abc")
        assert not regex.match("/items/abc/def")

    def test_compile_pattern_without_verb(self):
        verb, regex = compile_route_pattern("/files/*")

        assert verb == "*"
        assert regex.match("/files/a/b.txt")

    def test_compile_catch_all(self):
        verb, regex = compile_route_pattern("*")

        assert verb == "*"
        assert regex.match("/whatever")

    def test_normalize_path(self):
        assert normalize_path("/a//b/?x=1#frag") == "/a/b"
        assert normalize_path("/caf%C3%A9") == "/café"
        assert normalize_path("") == "/"

    def test_route_config_snake_and_camel_keys(self):
        camel = route_config_from_dict(
            {
                "accepts": {"scheme": "cash", "payTo": "a", "price": "$1", "network": "x402:cash"},
                "mimeType": "application/json",
            }
        )
        snake = route_config_from_dict(
            {
                "accepts": [{"scheme": "cash", "pay_to": "a", "price": "$1", "network": "x402:cash"}],
                "mime_type": "application/json",
            }
        )

        assert camel.accepts == snake.accepts
        assert camel.accepts[0].pay_to == "a"
        assert camel.mime_type == snake.mime_type == "application/json"


class TestInitialize:
    @pytest.mark.asyncio
    async def test_valid_routes(self):
        server = x402ResourceServer(CashFacilitatorClient()).register(
            "x402:cash", CashSchemeNetworkServer()
        )
        await x402HTTPResourceServer(server, ROUTES).initialize()
        assert server.initialized

    @pytest.mark.asyncio
    async def test_missing_scheme(self):
        server = x402ResourceServer(CashFacilitatorClient())

        with pytest.raises(RouteConfigurationError) as exc_info:
            await x402HTTPResourceServer(server, ROUTES).initialize()

        assert exc_info.value.errors[0].reason == "missing_scheme"

    @pytest.mark.asyncio
    async def test_missing_facilitator_support(self):
        server = x402ResourceServer(CashFacilitatorClient(networks=("x402:other",))).register(
            "x402:cash", CashSchemeNetworkServer()
        )

        with pytest.raises(RouteConfigurationError) as exc_info:
            await x402HTTPResourceServer(server, ROUTES).initialize()

        assert exc_info.value.errors[0].reason == "missing_facilitator"


class TestProcessHTTPRequest:
    def setup_method(self):
        self.facilitator = CashFacilitatorClient()
        self.server = x402ResourceServer(self.facilitator).register(
            "x402:cash", CashSchemeNetworkServer()
        )
        self.http_server = x402HTTPResourceServer(self.server, ROUTES)

    @pytest.mark.asyncio
    async def test_unprotected(self):
        await self.http_server.initialize()

        result = await self.http_server.process_http_request(make_context("/health"))
        assert result.type == "no-payment-required"

    @pytest.mark.asyncio
    async def test_missing_payment_returns_402_with_header(self):
        await self.http_server.initialize()

        result = await self.http_server.process_http_request(make_context())

        assert result.type == "payment-error"
        assert result.response.status == 402
        assert result.response.body["error"] == "Payment required"
        assert result.response.body["accepts"][0]["amount"] == "1.00"

        payment_required = decode_payment_required_header(
            result.response.headers[PAYMENT_REQUIRED_HEADER]
        )
        assert payment_required.accepts[0].pay_to == "merchant@example.com"
        assert payment_required.resource.description == "Weather report"
        assert self.facilitator.verify_calls == []

    @pytest.mark.asyncio
    async def test_browser_gets_paywall(self):
        await self.http_server.initialize()

        context = make_context(
            accept="text/html,application/xhtml+xml",
            user_agent="Mozilla/5.0",
        )
        result = await self.http_server.process_http_request(context)

        assert result.response.is_html
        assert "Payment Required" in result.response.body
        assert "1.00 USD" in result.response.body
        assert PAYMENT_REQUIRED_HEADER in result.response.headers

    @pytest.mark.asyncio
    async def test_unpaid_response_body(self):
        await self.http_server.initialize()

        routes = {
            "GET /weather": {
                **ROUTES["GET /weather"],
                "unpaidResponseBody": lambda ctx: UnpaidResponseResult(
                    content_type="text/plain", body="preview"
                ),
            }
        }
        http_server = x402HTTPResourceServer(self.server, routes)

        result = await http_server.process_http_request(make_context())

        assert result.response.body == "preview"
        assert result.response.headers["Content-Type"] == "text/plain"

    @pytest.mark.asyncio
    async def test_async_unpaid_response_body(self):
        await self.http_server.initialize()

        async def preview(ctx):
            await asyncio.sleep(0)
            return UnpaidResponseResult(content_type="application/json", body={"teaser": True})

        routes = {"GET /weather": {**ROUTES["GET /weather"], "unpaidResponseBody": preview}}
        http_server = x402HTTPResourceServer(self.server, routes)

        result = await http_server.process_http_request(make_context())

        assert result.response.status == 402
        assert result.response.body == {"teaser": True}
        assert result.response.headers["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_valid_payment_is_verified(self):
        await self.http_server.initialize()

        result = await self.http_server.process_http_request(
            make_context(payment_header=valid_header())
        )

        assert result.type == "payment-verified"
        assert result.payment_requirements.amount == "1.00"
        assert len(self.facilitator.verify_calls) == 1

    @pytest.mark.asyncio
    async def test_garbage_header(self):
        await self.http_server.initialize()

        result = await self.http_server.process_http_request(
            make_context(payment_header="not base64!")
        )

        assert result.response.status == 402
        assert result.response.body["error"] == "Invalid payment header format"

    @pytest.mark.asyncio
    async def test_payment_for_other_price(self):
        await self.http_server.initialize()

        result = await self.http_server.process_http_request(
            make_context(payment_header=valid_header(amount="0.01"))
        )

        assert result.response.status == 402
        assert result.response.body["error"] == "No matching payment requirements"
        assert self.facilitator.verify_calls == []

    @pytest.mark.asyncio
    async def test_invalid_signature(self):
        await self.http_server.initialize()

        requirements = build_cash_payment_requirements()
        header = encode_payment_signature_header(
            build_cash_payment_payload(requirements, signature="forged")
        )

        result = await self.http_server.process_http_request(make_context(payment_header=header))

        assert result.response.status == 402
        assert result.response.body["error"] == "invalid_signature"

    @pytest.mark.asyncio
    async def test_permit2_allowance_is_412(self):
        await self.http_server.initialize()

        self.facilitator.verify_response = VerifyResponse(
            is_valid=False, invalid_reason="permit2_allowance_required"
        )

        result = await self.http_server.process_http_request(
            make_context(payment_header=valid_header())
        )

        assert result.response.status == 412

    @pytest.mark.asyncio
    async def test_verify_exception_is_402(self):
        await self.http_server.initialize()

        self.facilitator.verify_error = ConnectionError("facilitator down")

        result = await self.http_server.process_http_request(
            make_context(payment_header=valid_header())
        )

        assert result.type == "payment-error"
        assert result.response.status == 402

    @pytest.mark.asyncio
    async def test_dynamic_price_and_pay_to(self):
        await self.http_server.initialize()

        async def price(context):
            await asyncio.sleep(0)
            return "$2.50"

        routes = {
            "GET /weather": {
                "accepts": {
                    "scheme": "cash",
                    "network": "x402:cash",
                    "payTo": lambda context: f"{context.adapter.get_query_param('shop')}@example.com",
                    "price": price,
                },
            }
        }
        http_server = x402HTTPResourceServer(self.server, routes)
        context = make_context(query_params={"shop": "bakery"})

        result = await http_server.process_http_request(context)

        accepted = result.response.body["accepts"][0]
        assert accepted["amount"] == "2.50"
        assert accepted["payTo"] == "bakery@example.com"


class TestProtectedRequestHooks:
    def setup_method(self):
        self.facilitator = CashFacilitatorClient()
        server = x402ResourceServer(self.facilitator).register(
            "x402:cash", CashSchemeNetworkServer()
        )
        self.http_server = x402HTTPResourceServer(server, ROUTES)

    @pytest.mark.asyncio
    async def test_grant(self):
        await self.http_server.initialize()

        self.http_server.on_protected_request(lambda context, route: GrantAccessResult())

        result = await self.http_server.process_http_request(make_context())

        assert result.type == "no-payment-required"

    @pytest.mark.asyncio
    async def test_abort_is_403(self):
        await self.http_server.initialize()

        async def deny(context, route):
            return AbortResult(reason="blocked")

        self.http_server.on_protected_request(deny)

        result = await self.http_server.process_http_request(
            make_context(payment_header=valid_header())
        )

        assert result.response.status == 403
        assert result.response.body == {"error": "blocked"}
        assert self.facilitator.verify_calls == []

    @pytest.mark.asyncio
    async def test_first_decisive_hook_wins(self):
        await self.http_server.initialize()

        calls = []

        def observe(context, route):
            calls.append("observe")

        def grant(context, route):
            calls.append("grant")
            return GrantAccessResult()

        def abort(context, route):
            calls.append("abort")
            return AbortResult(reason="never")

        self.http_server.on_protected_request(observe)
        self.http_server.on_protected_request(grant)
        self.http_server.on_protected_request(abort)

        result = await self.http_server.process_http_request(make_context())

        assert result.type == "no-payment-required"
        assert calls == ["observe", "grant"]


class TestProcessSettlement:
    def setup_method(self):
        self.facilitator = CashFacilitatorClient()
        self.server = x402ResourceServer(self.facilitator).register(
            "x402:cash", CashSchemeNetworkServer()
        )
        self.http_server = x402HTTPResourceServer(self.server, ROUTES)
        self.requirements = build_cash_payment_requirements()
        self.payload = build_cash_payment_payload(self.requirements)

    @pytest.mark.asyncio
    async def test_success_header(self):
        await self.http_server.initialize()

        result = await self.http_server.process_settlement(self.payload, self.requirements)

        assert result.success
        settle = decode_payment_response_header(result.headers[PAYMENT_RESPONSE_HEADER])
        assert settle.success
        assert settle.transaction == "John paid 1.00 USD"
        assert result.payer == "John"

    @pytest.mark.asyncio
    async def test_failure(self):
        await self.http_server.initialize()

        self.facilitator.settle_response = SettleResponse(
            success=False, error_reason="insufficient_funds"
        )

        result = await self.http_server.process_settlement(self.payload, self.requirements)

        assert not result.success
        assert result.error_reason == "insufficient_funds"
        assert result.headers == {}

    @pytest.mark.asyncio
    async def test_exception(self):
        await self.http_server.initialize()

        self.facilitator.settle_error = ConnectionError("timeout")

        result = await self.http_server.process_settlement(self.payload, self.requirements)

        assert not result.success
        assert result.error_reason == "timeout"

    @pytest.mark.asyncio
    async def test_extensions_enrich_settlement(self):
        await self.http_server.initialize()

        class Receipts:
            key = "receipts"

            def __init__(self):
                self.seen = None

            def enrich_declaration(self, declaration, transport_context):
                return declaration

            def enrich_settlement_response(self, declaration, settle_response, transport_context):
                self.seen = transport_context
                return {"receiptFor": transport_context.response_body.decode()}

        receipts = Receipts()
        self.server.register_extension(receipts)
        transport = TransportContext(request=make_context(), response_body=b'{"temp":72}')

        result = await self.http_server.process_settlement(
            self.payload, self.requirements, {"receipts": {}}, transport
        )

        assert receipts.seen is transport
        settle = decode_payment_response_header(result.headers[PAYMENT_RESPONSE_HEADER])
        assert settle.extensions == {"receipts": {"receiptFor": '{"temp":72}'}}
