"""Base types shared by the x402 wire models."""

from __future__ import annotations

from typing import Any, Union

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

X402_VERSION = 2

# CAIP-2 network identifier, e.g. "eip155:8453" or "solana:*"
Network = str

# "$0.01", "0.01" or 0.01 - resolved to an AssetAmount by a scheme server
Money = Union[str, int, float]


class BaseX402Model(BaseModel):
    """Base model: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


class AssetAmount(BaseX402Model):
    """Price already expressed in atomic units of a specific asset."""

    amount: str
    asset: str
    extra: dict[str, Any] | None = None


Price = Union[Money, AssetAmount]
