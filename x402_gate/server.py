"""x402ResourceServer - Server-side component for protecting resources.

Builds payment requirements, verifies payments, and settles transactions
via facilitator clients.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

from typing_extensions import Self

from .interfaces import SchemeNetworkServer
from .schemas import (
    Network,
    PaymentPayload,
    PaymentRequired,
    PaymentRequirements,
    Price,
    ResourceInfo,
    SchemeNotFoundError,
    SettleResponse,
    SupportedKind,
    SupportedResponse,
    VerifyResponse,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Collaborator Protocols
# ============================================================================


class FacilitatorClient(Protocol):
    """Protocol for async facilitator clients (HTTP or local).

    Note: verify/settle return response objects with is_valid/success=False
    on failure and raise only on transport errors.
    """

    async def verify(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
    ) -> VerifyResponse: ...

    async def settle(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
    ) -> SettleResponse: ...

    async def get_supported(self) -> SupportedResponse: ...


class ResourceServerExtension(Protocol):
    """Interface for resource server extensions (e.g., bazaar).

    Extensions enrich the declaration sent in 402 responses. An extension may
    also define ``enrich_settlement_response(declaration, settle_response,
    transport_context)`` to attach data (receipts, discovery records) to a
    successful settlement.
    """

    @property
    def key(self) -> str:
        """Unique extension key (e.g., 'bazaar')."""
        ...

    def enrich_declaration(self, declaration: Any, transport_context: Any) -> Any:
        """Enrich extension declaration with transport-specific data."""
        ...


@dataclass
class ResourceConfig:
    """Payment configuration for a single resource."""

    scheme: str
    pay_to: str
    price: Price
    network: Network
    max_timeout_seconds: int | None = None


# ============================================================================
# x402ResourceServer
# ============================================================================


class x402ResourceServer:
    """Server-side component for protecting resources.

    Example:
        ```python
        from x402_gate import x402ResourceServer
        from x402_gate.http import HTTPFacilitatorClient

        facilitator = HTTPFacilitatorClient({"url": "https://x402.org/facilitator"})
        server = x402ResourceServer(facilitator)
        server.register("eip155:8453", MyExactEvmServerScheme())

        await server.initialize()
        requirements = server.build_payment_requirements(config)
        result = await server.verify_payment(payload, requirements[0])
        ```
    """

    def __init__(
        self,
        facilitator_clients: FacilitatorClient | list[FacilitatorClient] | None = None,
    ) -> None:
        if not isinstance(facilitator_clients, list):
            facilitator_clients = [] if facilitator_clients is None else [facilitator_clients]
        self._facilitator_clients: list[FacilitatorClient] = facilitator_clients

        # network -> scheme -> server
        self._schemes: dict[Network, dict[str, SchemeNetworkServer]] = {}

        # network -> scheme -> client / supported response
        self._facilitator_clients_map: dict[Network, dict[str, FacilitatorClient]] = {}
        self._supported_responses: dict[Network, dict[str, SupportedResponse]] = {}

        self._extensions: dict[str, ResourceServerExtension] = {}

        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    # ========================================================================
    # Registration
    # ========================================================================

    def register(self, network: Network, server: SchemeNetworkServer) -> Self:
        """Register a scheme server for a network (wildcards like "eip155:*" allowed)."""
        self._schemes.setdefault(network, {})[server.scheme] = server
        return self

    def register_extension(self, extension: ResourceServerExtension) -> Self:
        """Register a resource server extension, replacing any with the same key."""
        self._extensions[extension.key] = extension
        return self

    def has_extension(self, key: str) -> bool:
        return key in self._extensions

    def get_extension(self, key: str) -> ResourceServerExtension | None:
        return self._extensions.get(key)

    def has_registered_scheme(self, network: Network, scheme: str) -> bool:
        """Check if a scheme is registered for a network or its wildcard."""
        return self._find_scheme_server(network, scheme) is not None

    def get_supported_kind(
        self, version: int, network: Network, scheme: str
    ) -> SupportedKind | None:
        """Get SupportedKind from facilitator for a network/scheme.

        Exact network matches win over "<namespace>:*" wildcard kinds.
        """
        prefix = network.split(":")[0]
        wildcard = f"{prefix}:*"

        for net in (network, wildcard):
            supported = self._supported_responses.get(net, {}).get(scheme)
            if supported is None:
                continue
            for kind in supported.kinds:
                if (
                    kind.x402_version == version
                    and kind.scheme == scheme
                    and kind.network in (network, wildcard)
                ):
                    return kind

        return None

    # ========================================================================
    # Initialization
    # ========================================================================

    async def initialize(self) -> None:
        """Fetch supported kinds from every facilitator.

        Earlier facilitators in the list get precedence.
        """
        for client in self._facilitator_clients:
            supported = await client.get_supported()

            for kind in supported.kinds:
                clients = self._facilitator_clients_map.setdefault(kind.network, {})
                clients.setdefault(kind.scheme, client)

                responses = self._supported_responses.setdefault(kind.network, {})
                responses.setdefault(kind.scheme, supported)

        self._initialized = True
        logger.debug(
            "Resource server initialized with %d facilitator(s)",
            len(self._facilitator_clients),
        )

    # ========================================================================
    # Build Requirements
    # ========================================================================

    def build_payment_requirements(
        self,
        config: ResourceConfig,
        extensions: list[str] | None = None,
    ) -> list[PaymentRequirements]:
        """Build payment requirements for a protected resource.

        Raises:
            SchemeNotFoundError: If the scheme server or facilitator support is missing.
            RuntimeError: If not initialized.
        """
        if not self._initialized:
            raise RuntimeError("Server not initialized. Call initialize() first.")

        server = self._find_scheme_server(config.network, config.scheme)
        if server is None:
            raise SchemeNotFoundError(config.scheme, config.network)

        supported_kind = self.get_supported_kind(2, config.network, config.scheme)
        if supported_kind is None:
            raise SchemeNotFoundError(config.scheme, config.network)

        asset_amount = server.parse_price(config.price, config.network)

        requirements = PaymentRequirements(
            scheme=config.scheme,
            network=config.network,
            asset=asset_amount.asset,
            amount=asset_amount.amount,
            pay_to=config.pay_to,
            max_timeout_seconds=config.max_timeout_seconds or 300,
            extra=asset_amount.extra or {},
        )

        return [
            server.enhance_payment_requirements(
                requirements,
                supported_kind,
                extensions or [],
            )
        ]

    def create_payment_required_response(
        self,
        requirements: list[PaymentRequirements],
        resource: ResourceInfo | None = None,
        error: str | None = None,
        extensions: dict[str, Any] | None = None,
    ) -> PaymentRequired:
        return PaymentRequired(
            x402_version=2,
            error=error,
            resource=resource,
            accepts=requirements,
            extensions=extensions,
        )

    def find_matching_requirements(
        self,
        available: list[PaymentRequirements],
        payload: PaymentPayload,
    ) -> PaymentRequirements | None:
        """Find the requirements a payment payload was built against.

        Compares the fields that determine what gets paid to whom; timeouts
        and scheme extras may differ.
        """
        accepted = payload.accepted
        wanted = (accepted.scheme, accepted.network, accepted.asset, accepted.amount, accepted.pay_to)
        return next(
            (r for r in available if (r.scheme, r.network, r.asset, r.amount, r.pay_to) == wanted),
            None,
        )

    # ========================================================================
    # Verify / Settle
    # ========================================================================

    async def verify_payment(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
    ) -> VerifyResponse:
        """Verify a payment via the facilitator responsible for its scheme.

        Raises:
            SchemeNotFoundError: If no facilitator handles the scheme/network.
            RuntimeError: If not initialized.
        """
        client = self._client_for(payload)
        return await client.verify(payload, requirements)

    async def settle_payment(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
    ) -> SettleResponse:
        """Settle a payment via the facilitator responsible for its scheme.

        Raises:
            SchemeNotFoundError: If no facilitator handles the scheme/network.
            RuntimeError: If not initialized.
        """
        client = self._client_for(payload)
        return await client.settle(payload, requirements)

    # ========================================================================
    # Extensions
    # ========================================================================

    def enrich_extensions(
        self,
        declared: dict[str, Any],
        transport_context: Any,
    ) -> dict[str, Any]:
        """Let registered extensions enrich their declarations for a request."""
        result = dict(declared)

        for key, extension in self._extensions.items():
            if key in declared:
                result[key] = extension.enrich_declaration(
                    declared[key],
                    transport_context,
                )

        return result

    def enrich_settlement(
        self,
        declared: dict[str, Any],
        settle_response: SettleResponse,
        transport_context: Any,
    ) -> dict[str, Any]:
        """Collect settlement-time data from extensions declared on the route.

        Extensions without ``enrich_settlement_response`` are skipped.
        """
        enriched: dict[str, Any] = {}

        for key, extension in self._extensions.items():
            if key not in declared:
                continue
            hook = getattr(extension, "enrich_settlement_response", None)
            if hook is None:
                continue
            value = hook(declared[key], settle_response, transport_context)
            if value is not None:
                enriched[key] = value

        return enriched

    # ========================================================================
    # Internal
    # ========================================================================

    def _find_scheme_server(self, network: Network, scheme: str) -> SchemeNetworkServer | None:
        wildcard = f"{network.split(':')[0]}:*"
        for net in (network, wildcard):
            server = self._schemes.get(net, {}).get(scheme)
            if server is not None:
                return server
        return None

    def _client_for(self, payload: PaymentPayload) -> FacilitatorClient:
        if not self._initialized:
            raise RuntimeError("Server not initialized. Call initialize() first.")

        scheme = payload.get_scheme()
        network = payload.get_network()
        wildcard = f"{network.split(':')[0]}:*"

        for net in (network, wildcard):
            client = self._facilitator_clients_map.get(net, {}).get(scheme)
            if client is not None:
                return client

        raise SchemeNotFoundError(scheme, network)
