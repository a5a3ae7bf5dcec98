"""Base64 header encoding helpers."""

from __future__ import annotations

import base64
import binascii
import json

from ..schemas import PaymentPayload, PaymentRequired, SettleResponse


def safe_base64_encode(data: str) -> str:
    return base64.b64encode(data.encode("utf-8")).decode("utf-8")


def safe_base64_decode(data: str) -> str:
    """Decode standard or URL-safe base64, tolerating missing padding.

    Raises:
        ValueError: If the input is not valid base64 or not UTF-8.
    """
    padded = data + "=" * (-len(data) % 4)
    try:
        if "-" in padded or "_" in padded:
            raw = base64.urlsafe_b64decode(padded)
        else:
            raw = base64.b64decode(padded, validate=True)
        return raw.decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise ValueError(f"Invalid base64 data: {e}") from e


def encode_payment_signature_header(payload: PaymentPayload) -> str:
    return safe_base64_encode(payload.model_dump_json(by_alias=True, exclude_none=True))


def decode_payment_signature_header(header: str) -> PaymentPayload:
    """Decode a PAYMENT-SIGNATURE / X-PAYMENT header value.

    Raises:
        ValueError: If the header is not base64 JSON.
        pydantic.ValidationError: If the JSON is not a payment payload.
    """
    return PaymentPayload.model_validate(json.loads(safe_base64_decode(header)))


def encode_payment_required_header(payment_required: PaymentRequired) -> str:
    return safe_base64_encode(
        payment_required.model_dump_json(by_alias=True, exclude_none=True)
    )


def decode_payment_required_header(header: str) -> PaymentRequired:
    return PaymentRequired.model_validate(json.loads(safe_base64_decode(header)))


def encode_payment_response_header(settle_response: SettleResponse) -> str:
    return safe_base64_encode(
        settle_response.model_dump_json(by_alias=True, exclude_none=True)
    )


def decode_payment_response_header(header: str) -> SettleResponse:
    return SettleResponse.model_validate(json.loads(safe_base64_decode(header)))
