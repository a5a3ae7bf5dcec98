"""Framework-neutral responses produced by the gate."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel

JSON_CONTENT_TYPE = "application/json"
HTML_CONTENT_TYPE = "text/html; charset=utf-8"


@dataclass(frozen=True)
class GateResponse:
    """A response the gate emits instead of the handler's."""

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    content: bytes = b""

    @property
    def media_type(self) -> str | None:
        for key, value in self.headers.items():
            if key.lower() == "content-type":
                return value
        return None


def encode_json(value: Any) -> bytes:
    """Compact JSON bytes; pydantic models are dumped with their wire aliases."""
    if isinstance(value, BaseModel):
        value = value.model_dump(by_alias=True, mode="json")
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def json_response(status: int, body: Any, headers: dict[str, str] | None = None) -> GateResponse:
    merged = dict(headers or {})
    _set_content_type(merged, JSON_CONTENT_TYPE)
    return GateResponse(status=status, headers=merged, content=encode_json({} if body is None else body))


def html_response(status: int, body: str, headers: dict[str, str] | None = None) -> GateResponse:
    merged = dict(headers or {})
    _set_content_type(merged, HTML_CONTENT_TYPE)
    return GateResponse(status=status, headers=merged, content=body.encode("utf-8"))


def _set_content_type(headers: dict[str, str], value: str) -> None:
    for key in [k for k in headers if k.lower() == "content-type"]:
        del headers[key]
    headers["Content-Type"] = value
