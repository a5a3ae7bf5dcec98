import pytest

from x402_gate.http import HTTPRequestContext

from ..mocks import MockHTTPAdapter, make_stub_http_server


@pytest.fixture
def stub_http_server():
    return make_stub_http_server()


@pytest.fixture
def request_context():
    return HTTPRequestContext(
        adapter=MockHTTPAdapter(path="/api/weather"),
        path="/api/weather",
        method="GET",
        payment_header="abc",
    )
