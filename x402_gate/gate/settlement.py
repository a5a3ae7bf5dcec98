"""Settlement stage: finalize a verified payment after the handler ran."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Union

from pydantic import BaseModel

from ..http.constants import HTTP_STATUS_PAYMENT_REQUIRED
from ..http.types import TransportContext
from .context import VerifiedPayment
from .responses import GateResponse, encode_json, json_response

if TYPE_CHECKING:
    from ..http.x402_http_server import x402HTTPResourceServer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SettlementSuccess:
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class SettlementFailure:
    reason: str


SettlementResult = Union[SettlementSuccess, SettlementFailure]


# ============================================================================
# Response inspection
# ============================================================================


def response_status(response: Any) -> int | None:
    """Status of a handler response, or None if it does not carry one.

    Understands objects with ``status_code`` (Starlette responses,
    HTTPException) and ``(body, status[, headers])`` tuples.
    """
    status = getattr(response, "status_code", None)
    if isinstance(status, int):
        return status
    if isinstance(response, tuple) and len(response) >= 2 and isinstance(response[1], int):
        return response[1]
    return None


async def _replay(chunks: list[bytes]) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk


def _to_bytes(chunk: Any, charset: str) -> bytes:
    if isinstance(chunk, (bytes, bytearray, memoryview)):
        return bytes(chunk)
    return str(chunk).encode(charset)


async def snapshot_response_body(response: Any) -> bytes:
    """Serialize a handler response body for settlement-time extensions.

    Streaming responses are drained and their iterator replaced with the
    buffered chunks, so the original can still be sent to the client.
    """
    if response is None:
        return b""
    if isinstance(response, (bytes, bytearray, memoryview)):
        return bytes(response)
    if isinstance(response, str):
        return response.encode("utf-8")
    if isinstance(response, tuple):
        return await snapshot_response_body(response[0] if response else None)
    if isinstance(response, (BaseModel, Mapping, list)):
        return encode_json(dict(response) if isinstance(response, Mapping) else response)

    iterator = getattr(response, "body_iterator", None)
    if iterator is not None:
        charset = getattr(response, "charset", "utf-8")
        chunks: list[bytes] = []
        if hasattr(iterator, "__aiter__"):
            async for chunk in iterator:
                chunks.append(_to_bytes(chunk, charset))
        else:
            for chunk in iterator:
                chunks.append(_to_bytes(chunk, charset))
        response.body_iterator = _replay(chunks)
        return b"".join(chunks)

    body = getattr(response, "body", None)
    if isinstance(body, (bytes, bytearray, memoryview)):
        return bytes(body)

    return b""


# ============================================================================
# Stage
# ============================================================================


class SettlementStage:
    """Decides whether to settle and calls the resource server to do it."""

    def __init__(self, http_server: x402HTTPResourceServer) -> None:
        self._http_server = http_server

    async def settle(self, verified: VerifiedPayment, response: Any) -> SettlementResult | None:
        """Settle ``verified`` for the handler's ``response``.

        Returns None when the handler rejected the request (status >= 400)
        and nothing was settled. Never raises.
        """
        context = verified.context
        status = response_status(response)
        if status is not None and status >= 400:
            logger.debug(
                "Handler for %s %s returned %d; skipping settlement",
                context.method,
                context.path,
                status,
            )
            return None

        try:
            body = await snapshot_response_body(response)
            result = await self._http_server.process_settlement(
                verified.payment_payload,
                verified.payment_requirements,
                verified.declared_extensions,
                TransportContext(request=context, response_body=body),
            )
        except Exception as e:
            logger.exception("Settlement errored for %s %s", context.method, context.path)
            return SettlementFailure(str(e) or "Unknown error")

        if result.success:
            return SettlementSuccess(headers=dict(result.headers))

        reason = result.error_reason or "Settlement failed"
        logger.warning("Settlement failed for %s %s: %s", context.method, context.path, reason)
        return SettlementFailure(reason)


def settlement_failed_response(failure: SettlementFailure) -> GateResponse:
    """The fixed 402 that replaces a handler response whose payment didn't settle."""
    return json_response(
        HTTP_STATUS_PAYMENT_REQUIRED,
        {"error": "Settlement failed", "details": failure.reason},
    )
