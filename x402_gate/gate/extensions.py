"""Optional resource server extension loading (e.g. bazaar discovery)."""

from __future__ import annotations

import importlib
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from ..http.x402_http_server import x402HTTPResourceServer

logger = logging.getLogger(__name__)

BAZAAR = "bazaar"
BAZAAR_MODULE = "x402.extensions.bazaar"
BAZAAR_ATTRIBUTE = "bazaar_resource_server_extension"


class ExtensionRegistry(Protocol):
    def has_extension(self, key: str) -> bool: ...

    def register_extension(self, extension: Any) -> Any: ...


class NullExtensionRegistry:
    """Registry used when the resource server cannot hold extensions."""

    def has_extension(self, key: str) -> bool:
        return False

    def register_extension(self, extension: Any) -> NullExtensionRegistry:
        return self


def extension_registry(server: Any) -> ExtensionRegistry:
    if callable(getattr(server, "has_extension", None)) and callable(
        getattr(server, "register_extension", None)
    ):
        return server
    return NullExtensionRegistry()


def routes_declare_extension(http_server: x402HTTPResourceServer, key: str) -> bool:
    """Check whether any configured route declares the extension ``key``."""
    return any(
        config.extensions and key in config.extensions for config in http_server.route_configs()
    )


def load_extension(module_name: str = BAZAAR_MODULE, attribute: str = BAZAAR_ATTRIBUTE) -> Any:
    """Import an extension object from an optional dependency.

    Raises:
        ImportError: If the module is not installed.
        AttributeError: If the module has no such attribute.
    """
    module = importlib.import_module(module_name)
    return getattr(module, attribute)


async def initialize_extension(
    http_server: x402HTTPResourceServer,
    key: str = BAZAAR,
    loader: Callable[[], Any] = load_extension,
) -> None:
    """Register extension ``key`` if a route needs it and it is missing.

    Load failures are logged and swallowed; routes that don't use the
    extension keep working.
    """
    if not routes_declare_extension(http_server, key):
        return

    registry = extension_registry(http_server.server)
    if registry.has_extension(key):
        return

    try:
        registry.register_extension(loader())
    except Exception:
        logger.exception("Failed to load %s extension; continuing without it", key)
        return

    logger.debug("Registered %s extension", key)
