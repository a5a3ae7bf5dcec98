"""Facilitator response models."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from .base import BaseX402Model, Network


class VerifyResponse(BaseX402Model):
    """Result of a facilitator /verify call."""

    is_valid: bool
    invalid_reason: str | None = None
    payer: str | None = None


class SettleResponse(BaseX402Model):
    """Result of a facilitator /settle call."""

    success: bool
    error_reason: str | None = None
    payer: str | None = None
    transaction: str = ""
    network: Network = ""
    extensions: dict[str, Any] | None = None


class SupportedKind(BaseX402Model):
    """A (version, scheme, network) triple a facilitator can handle."""

    x402_version: int
    scheme: str
    network: Network
    extra: dict[str, Any] | None = None


class SupportedResponse(BaseX402Model):
    """Result of a facilitator /supported call."""

    kinds: list[SupportedKind]
    extensions: list[str] = Field(default_factory=list)
    signers: dict[str, list[str]] = Field(default_factory=dict)
