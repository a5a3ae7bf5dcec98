"""
FastAPI middleware for x402 payment gating.

Install: pip install x402-gate[fastapi]

Example:
    from fastapi import FastAPI
    from x402_gate.fastapi import payment_middleware

    app = FastAPI()
    app.middleware("http")(payment_middleware(routes, resource_server))
"""

from .adapter import FastAPIAdapter, read_json_body
from .middleware import (
    PaymentMiddlewareASGI,
    SchemeRegistration,
    payment_middleware,
    payment_middleware_from_config,
    payment_middleware_from_http_server,
    to_starlette_response,
)

__all__ = [
    "FastAPIAdapter",
    "PaymentMiddlewareASGI",
    "SchemeRegistration",
    "payment_middleware",
    "payment_middleware_from_config",
    "payment_middleware_from_http_server",
    "read_json_body",
    "to_starlette_response",
]
