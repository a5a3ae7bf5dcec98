"""Tests for x402ResourceServer using the cash scheme."""

import pytest

from x402_gate import ResourceConfig, x402ResourceServer
from x402_gate.schemas import AssetAmount, ResourceInfo, SchemeNotFoundError

from .mocks import (
    CashFacilitatorClient,
    CashSchemeNetworkServer,
    build_cash_payment_payload,
    build_cash_payment_requirements,
)


def cash_config(price="$1.00", network="x402:cash"):
    return ResourceConfig(
        scheme="cash",
        pay_to="merchant@example.com",
        price=price,
        network=network,
    )


class TestResourceServer:
    def setup_method(self):
        self.facilitator = CashFacilitatorClient()
        self.server = x402ResourceServer(self.facilitator).register(
            "x402:cash", CashSchemeNetworkServer()
        )

    def test_build_requires_initialize(self):
        with pytest.raises(RuntimeError):
            self.server.build_payment_requirements(cash_config())

    @pytest.mark.asyncio
    async def test_build_payment_requirements(self):
        await self.server.initialize()

        [requirements] = self.server.build_payment_requirements(cash_config())

        assert requirements.amount == "1.00"
        assert requirements.asset == "USD"
        assert requirements.max_timeout_seconds == 300

    @pytest.mark.asyncio
    async def test_asset_amount_price(self):
        await self.server.initialize()

        [requirements] = self.server.build_payment_requirements(
            cash_config(price=AssetAmount(amount="5", asset="EUR"))
        )

        assert (requirements.amount, requirements.asset) == ("5", "EUR")

    @pytest.mark.asyncio
    async def test_unknown_scheme(self):
        await self.server.initialize()

        with pytest.raises(SchemeNotFoundError):
            self.server.build_payment_requirements(cash_config(network="x402:other"))

    @pytest.mark.asyncio
    async def test_wildcard_registration(self):
        facilitator = CashFacilitatorClient(networks=("x402:*",))
        server = x402ResourceServer(facilitator).register("x402:*", CashSchemeNetworkServer())
        await server.initialize()

        assert server.has_registered_scheme("x402:cash", "cash")
        assert server.get_supported_kind(2, "x402:cash", "cash") is not None

    @pytest.mark.asyncio
    async def test_first_facilitator_wins(self):
        first = CashFacilitatorClient()
        second = CashFacilitatorClient()
        server = x402ResourceServer([first, second]).register(
            "x402:cash", CashSchemeNetworkServer()
        )
        await server.initialize()

        requirements = build_cash_payment_requirements()
        await server.verify_payment(build_cash_payment_payload(requirements), requirements)

        assert len(first.verify_calls) == 1
        assert second.verify_calls == []

    @pytest.mark.asyncio
    async def test_verify_and_settle(self):
        await self.server.initialize()
        requirements = build_cash_payment_requirements()
        payload = build_cash_payment_payload(requirements)

        verify = await self.server.verify_payment(payload, requirements)
        settle = await self.server.settle_payment(payload, requirements)

        assert verify.is_valid
        assert settle.success
        assert len(self.facilitator.settle_calls) == 1

    def test_find_matching_requirements(self):
        accepts = [
            build_cash_payment_requirements(amount="0.50"),
            build_cash_payment_requirements(amount="1.00"),
        ]
        payload = build_cash_payment_payload(build_cash_payment_requirements(amount="1.00"))

        assert self.server.find_matching_requirements(accepts, payload) is accepts[1]
        assert self.server.find_matching_requirements(accepts[:1], payload) is None

    def test_payment_required_response(self):
        response = self.server.create_payment_required_response(
            [build_cash_payment_requirements()],
            ResourceInfo(url="https://example.com/weather"),
            "Payment required",
        )

        assert response.x402_version == 2
        assert response.error == "Payment required"

    def test_extensions(self):
        class Upper:
            key = "shout"

            def enrich_declaration(self, declaration, transport_context):
                return declaration.upper()

        self.server.register_extension(Upper())

        enriched = self.server.enrich_extensions({"shout": "hi", "other": "x"}, None)

        assert enriched == {"shout": "HI", "other": "x"}
        assert self.server.enrich_settlement({"shout": "hi"}, None, None) == {}
