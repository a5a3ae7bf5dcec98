"""HTTPAdapter over a Starlette/FastAPI request."""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import Request

logger = logging.getLogger(__name__)


class FastAPIAdapter:
    """Exposes the request data the HTTP resource server reads.

    The body is not read by the adapter itself; pass it in (see
    ``read_json_body``) because reading it is async.
    """

    def __init__(self, request: Request, body: Any = None) -> None:
        self._request = request
        self._body = body

    @property
    def request(self) -> Request:
        return self._request

    def get_header(self, name: str) -> str | None:
        return self._request.headers.get(name)

    def get_method(self) -> str:
        return self._request.method

    def get_path(self) -> str:
        return self._request.url.path

    def get_url(self) -> str:
        return str(self._request.url)

    def get_accept_header(self) -> str:
        return self._request.headers.get("accept", "")

    def get_user_agent(self) -> str:
        return self._request.headers.get("user-agent", "")

    def get_query_params(self) -> dict[str, str | list[str]]:
        params = self._request.query_params
        result: dict[str, str | list[str]] = {}
        for key in params.keys():
            values = params.getlist(key)
            result[key] = values[0] if len(values) == 1 else values
        return result

    def get_query_param(self, name: str) -> str | list[str] | None:
        values = self._request.query_params.getlist(name)
        if not values:
            return None
        return values[0] if len(values) == 1 else values

    def get_body(self) -> Any:
        return self._body


async def read_json_body(request: Request) -> Any:
    """Parsed JSON body, or None for non-JSON or malformed bodies."""
    content_type = request.headers.get("content-type", "")
    if "application/json" not in content_type:
        return None
    try:
        return json.loads(await request.body() or b"null")
    except ValueError:
        logger.debug("Ignoring malformed JSON body on %s", request.url.path)
        return None
